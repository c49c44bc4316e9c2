"""MPC Control - Receding-Horizon Path Tracking for a Simulated Car

Computes steering and throttle once per telemetry update by solving a
constrained nonlinear program over a kinematic bicycle model and executing
only the first step of the optimized horizon.

## Pipeline

### Stage 1: Frame Transform (frame.py)
Re-expresses the upcoming world-frame waypoints in the vehicle frame
(vehicle at the origin, heading zero).

### Stage 2: Reference Fit (path.py)
Fits a cubic y = f(x) to the local waypoints with a QR least-squares solve.

### Stage 3: Initial State (state.py)
Builds (x, y, psi, v, cte, epsi) = (0, 0, 0, v, f(0), -atan(f'(0))) and,
in "project" latency mode, advances it by the actuation latency.

### Stage 4: Trajectory Optimizer (optimizer.py)
casadi + IPOPT over N states and N-1 actuations with kinematic equality
constraints, actuator box constraints and a quadratic tracking/effort/rate
cost. Returns the first actuation and the predicted trajectory.

### Stage 5: Command Emitter (emitter.py)
Normalizes steering and throttle to [-1, 1], applies the actuator sign
convention and frames the socket.io reply.

## Modules

- `config.py` - Documented constants and the immutable VehicleParameters
- `model.py` - Kinematic bicycle model, ControlState and Actuation
- `controller.py` - One control cycle with error handling and fallbacks
- `telemetry.py` - Frame decoding and telemetry validation
- `server.py` - WebSocket server and logging setup
- `data_collector.py` - Per-cycle CSV logging
- `component_modes.py` - Warm start, latency and fallback switches
- `visualization.py`, `plot_results.py` - Plots of logged runs

## Quick Start

```bash
python -m mpc_control            # listen on ws://127.0.0.1:4567
python -m mpc_control --latency-mode delay --fallback hold -v
python -m mpc_control.plot_results --save --no-show
```

## Version

0.1.0 - Initial implementation
"""

__version__ = "0.1.0"

from .config import VehicleParameters
from .controller import MPCController, TickResult
from .exceptions import InsufficientData, InvalidInput, OptimizationFailed
from .optimizer import HorizonPlan, IpoptTrajectorySolver, SolveResult, TrajectorySolver

__all__ = [
    "VehicleParameters",
    "MPCController",
    "TickResult",
    "IpoptTrajectorySolver",
    "TrajectorySolver",
    "HorizonPlan",
    "SolveResult",
    "InvalidInput",
    "InsufficientData",
    "OptimizationFailed",
]
