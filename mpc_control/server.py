#!/usr/bin/env python3
"""
WebSocket Server for MPC Vehicle Control

This module provides the WebSocket endpoint the driving simulator connects
to. Every telemetry event runs one control cycle and is answered with a steer
event carrying the normalized steering/throttle and the predicted and
reference trajectories for display. Frames without data are answered with a
manual-mode message.
"""

import asyncio
import logging
import signal
from typing import Any, Optional, Union

import websockets

from .component_modes import ComponentMode
from .config import TERM_BLUE, TERM_ORANGE, TERM_RESET, WS_HOST, WS_PORT
from .controller import MPCController, is_safe_command
from .data_collector import DataCollector
from .emitter import encode_manual, encode_steer
from .exceptions import InvalidInput
from .telemetry import TELEMETRY_EVENT, decode_event, is_event_frame, parse_telemetry


class CustomFormatter(logging.Formatter):
    """Custom logging formatter that removes timestamps from INFO messages.

    This formatter provides clean console output by showing INFO messages without
    timestamps while preserving full context for WARNING, ERROR, and DEBUG messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record based on its level.

        Args:
            record: The log record to format.

        Returns:
            Formatted log message string.
        """
        if record.levelno == logging.INFO:
            return record.getMessage()
        else:
            return f"{self.formatTime(record, self.datefmt)} - {record.levelname} - {record.getMessage()}"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, show all levels with timestamps. If False, show INFO
                 without timestamps and WARNING/ERROR with timestamps.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        handler = logging.StreamHandler()
        formatter = CustomFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(formatter)
        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)


class MPCServer:
    """Telemetry endpoint driving an MPCController.

    Messages are handled one at a time and the controller is guarded by a
    lock, so there is never more than one solve in flight even if the
    simulator reconnects while a cycle is running.

    Attributes:
        controller: Control pipeline run for every telemetry event.
        host: Interface to bind.
        port: Port to listen on.
        should_stop: Flag indicating whether the server should shut down.
    """

    def __init__(self, controller: MPCController, host: str = WS_HOST, port: int = WS_PORT) -> None:
        """Initialize the server.

        Args:
            controller: Control pipeline.
            host: Interface to bind (default: config WS_HOST).
            port: Port to listen on (default: config WS_PORT).

        Raises:
            ValueError: If the port is out of range.
        """
        if not 0 < port < 65536:
            raise ValueError(f"Invalid port: {port}")

        self.controller = controller
        self.host = host
        self.port = port
        self.should_stop: bool = False
        self._lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._control_started = False

    async def handle_message(self, message: Union[str, bytes]) -> Optional[str]:
        """Run the pipeline for one frame and build the reply.

        Args:
            message: Raw frame from the simulator.

        Returns:
            Reply frame, or None when the frame needs no answer (non-event
            frames and events other than telemetry).
        """
        if not is_event_frame(message):
            return None

        try:
            event = decode_event(message)
        except InvalidInput as e:
            logging.warning(f"Malformed frame, switching to manual: {e}")
            return encode_manual()

        if event is None:
            return encode_manual()

        name, data = event
        if name != TELEMETRY_EVENT:
            logging.debug(f"Ignoring event '{name}'")
            return None

        try:
            telemetry = parse_telemetry(data)
        except InvalidInput as e:
            logging.warning(f"Invalid telemetry, switching to manual: {e}")
            return encode_manual()

        async with self._lock:
            result = self.controller.process(telemetry)

            if result.command is None or not is_safe_command(result.command):
                return encode_manual()

            if not self._control_started:
                logging.info(f"{TERM_BLUE}✓ Running MPC path tracking{TERM_RESET}")
                self._control_started = True

            delay = self.controller.command_delay
            if delay > 0:
                await asyncio.sleep(delay)

        return encode_steer(result.command)

    async def handler(self, websocket: Any) -> None:
        """Serve one simulator connection until it closes."""
        logging.info(f"{TERM_BLUE}✓ Simulator connected{TERM_RESET}")
        try:
            async for message in websocket:
                reply = await self.handle_message(message)
                if reply is not None:
                    await websocket.send(reply)
        except websockets.exceptions.ConnectionClosed:
            logging.warning("Connection closed by simulator")
        finally:
            logging.info("Simulator disconnected")

    async def serve(self) -> None:
        """Listen for connections until stop() is called."""
        self._stop_event = asyncio.Event()
        if self.should_stop:
            self._stop_event.set()

        async with websockets.serve(self.handler, self.host, self.port):
            logging.info(f"{TERM_BLUE}✓ Listening on ws://{self.host}:{self.port}{TERM_RESET}")
            await self._stop_event.wait()

        logging.info(
            f"Processed {self.controller.cycle_count} cycles, "
            f"{self.controller.failure_count} optimizer failures"
        )

    def stop(self) -> None:
        """Signal the server to stop."""
        self.should_stop = True
        if self._stop_event is not None:
            self._stop_event.set()


async def main(
    component_mode: Optional[ComponentMode] = None,
    host: str = WS_HOST,
    port: int = WS_PORT,
    log_data: bool = True,
) -> None:
    """Main entry point for the control server.

    Creates the controller (and optional run logging), sets up signal
    handlers for graceful shutdown, and serves until interrupted.

    Args:
        component_mode: Runtime modes (warm start, latency, fallback).
        host: Interface to bind.
        port: Port to listen on.
        log_data: If True, write per-cycle CSVs under results/.
    """
    if component_mode is None:
        component_mode = ComponentMode()
    logging.info(f"{TERM_BLUE}Component Configuration: {component_mode}{TERM_RESET}")

    data_collector = DataCollector() if log_data else None
    if data_collector is not None:
        data_collector.setup()

    controller = MPCController(mode=component_mode, data_collector=data_collector)
    server = MPCServer(controller, host=host, port=port)

    loop = asyncio.get_running_loop()

    def signal_handler() -> None:
        """Handle shutdown signals (SIGINT, SIGTERM)."""
        logging.info("\nShutdown signal received...")
        server.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            logging.warning(f"{TERM_ORANGE}Signal handlers unavailable on this platform{TERM_RESET}")
            break

    try:
        await server.serve()
    finally:
        if data_collector is not None:
            data_collector.cleanup()
