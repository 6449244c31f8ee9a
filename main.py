import base64
import os
from typing import Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse

from lsys_config import get_settings
from lsystem import LSystem, LSystemError, expanded_length, generate_lsystem_state, symbols_to_string
from lsystem_animator import animate_steps_stream
from lsystem_draw import IMAGE_FORMATS, draw_lsystem, draw_lsystem_bytes, generate_drawing_steps
from lsystem_frame_manager import LSystemFrameManager
from lsystem_presets import PRESETS, get_preset
from utils import get_logger

settings = get_settings()
logger = get_logger(__name__)
logger.setLevel(settings.log_level)

app = FastAPI()
lsystem_frame_manager = LSystemFrameManager()

STATIC_DIR = settings.output_dir
os.makedirs(STATIC_DIR, exist_ok=True)

MEDIA_TYPES = {"png": "image/png", "svg": "image/svg+xml"}
NUMBER_PARAMS = ("forward", "turn", "startingx", "startingy", "starting_orientation")


class RequestTooLarge(LSystemError):
    pass


@app.exception_handler(RequestTooLarge)
async def too_large_handler(request: Request, exc: RequestTooLarge):
    logger.warning("rejected %s: %s", request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=413)


@app.exception_handler(LSystemError)
async def lsystem_error_handler(request: Request, exc: LSystemError):
    logger.warning("bad request to %s: %s", request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=400)


# ---------------- Request helpers -------------------

def _number(payload: dict, key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise LSystemError(f"{key} must be a number")
    return float(value)


def _seed(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise LSystemError("rng_seed must be a non-negative integer")
    return value


def _flag(payload: dict, key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise LSystemError(f"{key} must be true or false")
    return value


def _preset(name: str):
    try:
        return get_preset(name)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e.args[0]))


def _check_limits(lsystem: LSystem, iterations) -> None:
    if isinstance(iterations, int) and iterations > settings.max_iterations:
        raise RequestTooLarge(f"iterations must be <= {settings.max_iterations}")
    length = expanded_length(lsystem.seed, lsystem.rules, iterations)
    if length > settings.max_symbols:
        raise RequestTooLarge(f"expansion has {length} symbols, the limit is {settings.max_symbols}")


def resolve_request(payload: dict):
    """Build (lsystem, draw kwargs) from a preset name or explicit rules and seed."""
    if not isinstance(payload, dict):
        raise LSystemError("request body must be a JSON object")

    name = payload.get("preset")
    if name:
        preset = _preset(name)
        lsystem = preset.build()
        params = preset.draw_kwargs()
    else:
        rules = payload.get("rules")
        seed = payload.get("seed")
        if not isinstance(rules, dict) or not all(isinstance(v, str) for v in rules.values()):
            raise LSystemError("rules must be an object mapping single symbols to replacement strings")
        if not isinstance(seed, str) or not seed:
            raise LSystemError("seed must be a non-empty string")
        lsystem = LSystem(rules, seed)
        params = {}

    for key in NUMBER_PARAMS:
        if payload.get(key) is not None:
            params[key] = _number(payload, key)
    if payload.get("iterations") is not None:
        params["iterations"] = payload["iterations"]
    if payload.get("rng_seed") is not None:
        params["rng"] = _seed(payload["rng_seed"])
    params.setdefault("iterations", 6)

    _check_limits(lsystem, params["iterations"])
    return lsystem, params


def _image_response(payload: dict, fmt: str, fit: bool) -> Response:
    if fmt not in IMAGE_FORMATS:
        raise LSystemError(f"fmt must be one of {IMAGE_FORMATS}")
    lsystem, params = resolve_request(payload)
    size = settings.image_size
    data = draw_lsystem_bytes(lsystem, fmt=fmt, width=size, height=size, fit=fit, **params)
    return Response(content=data, media_type=MEDIA_TYPES[fmt])


# ---------------- Presets -------------------

@app.get("/presets")
def presets():
    return JSONResponse({"presets": [p.as_dict() for p in PRESETS.values()]})


# ---------------- Drawing -------------------

@app.get("/drawlsystem")
def drawlsystem(
    preset: str = Query(..., description="Name of a preset system"),
    iterations: Optional[int] = Query(None, ge=0),
    forward: Optional[float] = None,
    turn: Optional[float] = None,
    fmt: str = "png",
    fit: bool = True,
    rng_seed: Optional[int] = None,
):
    """Render a preset, optionally overriding its parameters."""
    payload = {"preset": preset, "iterations": iterations, "forward": forward, "turn": turn, "rng_seed": rng_seed}
    return _image_response(payload, fmt, fit)


@app.post("/drawlsystem")
def drawlsystem_custom(payload: dict = Body(...)):
    """Render a system given as {rules, seed, iterations, forward, turn, ...}."""
    return _image_response(payload, payload.get("fmt", "png"), _flag(payload, "fit", True))


@app.post("/expand")
def expand_system(payload: dict = Body(...)):
    lsystem, params = resolve_request(payload)
    state = generate_lsystem_state(symbols_to_string(lsystem.seed), params["iterations"], lsystem.rules)
    return JSONResponse({"state": state, "length": len(state)})


@app.post("/drawing_steps")
def drawing_steps(payload: dict = Body(...)):
    lsystem, params = resolve_request(payload)
    steps = generate_drawing_steps(lsystem, **params)
    return JSONResponse({"steps": steps})


@app.post("/save_lsystem")
def save_lsystem(payload: dict = Body(...)):
    """Draw into the output directory and report the file written."""
    name = payload.get("filename") or "lsystem.png"
    if os.path.basename(name) != name:
        raise LSystemError("filename must not contain a directory")
    lsystem, params = resolve_request(payload)
    result = draw_lsystem(lsystem, filename=os.path.join(STATIC_DIR, name), **params)
    return JSONResponse({"file": name, "commands": result.commands})


@app.get("/lsystem_file/{filename}")
def lsystem_file(filename: str):
    path = os.path.join(STATIC_DIR, os.path.basename(filename))
    if not os.path.exists(path):
        return JSONResponse({"error": "File not found"}, status_code=404)
    return FileResponse(path, headers={"Cache-Control": "no-store"})


# ---------------- Animation -------------------

@app.get("/animate_lsystem")
async def animate_lsystem(
    preset: str = Query(..., description="Name of a preset system"),
    iterations: Optional[int] = Query(None, ge=0),
    step_delay: float = Query(0.005, ge=0.0),
):
    payload = {"preset": preset, "iterations": iterations}
    lsystem, params = resolve_request(payload)
    size = settings.image_size
    steps = generate_drawing_steps(lsystem, canvas_size=(size, size), **params)

    await lsystem_frame_manager.begin({"preset": preset, "iterations": params["iterations"], "steps": len(steps)})

    return StreamingResponse(
        animate_steps_stream(steps, lsystem_frame_manager, step_delay=step_delay, size=(size, size)),
        media_type="multipart/x-mixed-replace; boundary=frame"
    )


@app.get("/lsystem_snapshots")
async def lsystem_snapshots():
    """Frames kept from the last /animate_lsystem render, with what was rendered.

    202 while that render is still streaming.
    """
    snapshot = await lsystem_frame_manager.snapshot()
    if snapshot is None:
        return JSONResponse({"status": "pending", "frames": []}, status_code=202, headers={"Cache-Control": "no-store"})
    frames_b64 = [base64.b64encode(f).decode("utf-8") for f in snapshot["frames"]]
    return JSONResponse({"status": "ready", "render": snapshot["render"], "frames": frames_b64},
                        headers={"Cache-Control": "no-store, no-cache, must-revalidate, max-age=0"})
