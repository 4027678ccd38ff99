"""
FastAPI server for the simulator-planner bridge.
Receives telemetry over the simulator's websocket and answers with planned trajectories.
"""

import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from bridge.protocol import MANUAL_MESSAGE, TelemetryMessage, decode_frame, encode_control

# Log slow cycles to spot the planner falling behind the simulator clock.
SLOW_REQUEST_SECONDS = 0.02


def _get_bridge_logger() -> logging.Logger:
    log_path = Path(__file__).resolve().parents[1] / "tmp" / "logs" / "planner_bridge.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    bridge_logger = logging.getLogger("planner_bridge")
    bridge_logger.setLevel(logging.INFO)

    if not any(isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path)
               for h in bridge_logger.handlers):
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        handler.setFormatter(formatter)
        bridge_logger.addHandler(handler)
        bridge_logger.propagate = False

    return bridge_logger


logger = _get_bridge_logger()


def handle_frame(planner, frame: str) -> Optional[str]:
    """
    Process one simulator text frame.

    Args:
        planner: PathPlanner handling telemetry
        frame: Raw websocket text frame

    Returns:
        Reply frame, or None when nothing should be sent back
    """
    event = decode_frame(frame)
    if event is None:
        return None
    if event.name == "manual" or event.data is None:
        return MANUAL_MESSAGE
    if event.name != "telemetry":
        logger.info("Ignoring simulator event %r", event.name)
        return None

    start_time = time.time()
    output = planner.handle_telemetry(event.data)
    duration = time.time() - start_time
    if duration > SLOW_REQUEST_SECONDS:
        logger.warning(
            "[SLOW] telemetry cycle duration=%.3fs cycle=%d",
            duration,
            planner.cycle_count,
        )
    if output is None:
        logger.warning("Malformed telemetry, no trajectory sent (cycle=%d)", planner.cycle_count)
        return None
    return encode_control(output)


def create_app(planner) -> FastAPI:
    """Create the bridge app serving the given planner."""
    app = FastAPI(title="Highway Path Planner Bridge")
    app.state.planner = planner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def simulator_socket(websocket: WebSocket):
        await websocket.accept()
        logger.info("Connected!!!")
        try:
            while True:
                frame = await websocket.receive_text()
                reply = handle_frame(websocket.app.state.planner, frame)
                if reply is not None:
                    await websocket.send_text(reply)
        except WebSocketDisconnect as e:
            logger.info("Disconnected (code=%s)", e.code)

    # The simulator's socket.io client connects on /socket.io/; plain clients use /.
    app.add_api_websocket_route("/", simulator_socket)
    app.add_api_websocket_route("/socket.io/", simulator_socket)

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "cycles": app.state.planner.cycle_count,
            "skipped": app.state.planner.skipped_count,
        }

    @app.get("/api/state")
    async def get_reference_state():
        """
        Get the reference state carried between planning cycles.

        Returns:
            lane, ref_speed, ramp_complete, behavior_state
        """
        return asdict(app.state.planner.state)

    @app.post("/api/telemetry")
    async def plan_telemetry(message: TelemetryMessage):
        """
        Plan one cycle over HTTP (replay and debugging).

        Args:
            message: Telemetry event data

        Returns:
            Planned trajectory and cycle diagnostics
        """
        output = app.state.planner.plan(message.to_telemetry())
        return {
            **output.to_message(),
            "state": asdict(output.state),
            "too_close": output.too_close,
            "lead_vehicle_id": output.lead_vehicle_id,
            "used_fallback": output.used_fallback,
        }

    @app.post("/api/reset")
    async def reset_planner():
        """Reset the reference state for a new simulation session."""
        app.state.planner.reset()
        return {"status": "reset"}

    return app


def run_server(planner, host: str = "0.0.0.0", port: int = 4567):
    """Run the bridge server."""
    print(f"Starting Path Planner Bridge Server on {host}:{port}")
    print("Endpoints:")
    print("  WS   /socket.io/ - Simulator telemetry/control events")
    print("  POST /api/telemetry - Plan one cycle from telemetry JSON")
    print("  GET  /api/state - Current reference state")
    print("  POST /api/reset - Reset reference state")
    print("  GET  /api/health - Health check")

    uvicorn.run(create_app(planner), host=host, port=port)
