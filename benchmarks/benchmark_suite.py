"""
Benchmark Suite

Performance of one full timestep (stream, bounce-back, collide) for each
collision model, and of the NumPy vs Numba array kernels.
"""

import numpy as np
import time
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lbm_solver.boundary import create_cylinder_mask
from lbm_solver.collision import bgk_collision, bgk_collision_fast, trt_collision, trt_collision_fast
from lbm_solver.config import COLLISION_MODELS, SimulationConfig
from lbm_solver.equilibrium import compute_equilibrium, compute_equilibrium_fast
from lbm_solver.streaming import stream, stream_fast


def benchmark_state(nx, ny, collision, num_steps, warmup_steps=5):
    """
    Benchmark SimulationState.step for one collision model.

    Returns
    -------
    mlups : float
        Million Lattice Updates Per Second
    """
    config = SimulationConfig(width=nx, height=ny, viscosity=0.02,
                              collision=collision, velocity=(0.05, 0.0))
    state = config.build_state(create_cylinder_mask(nx, ny, nx // 4, ny // 2, ny // 10))

    for _ in range(warmup_steps):
        state.step()

    start = time.perf_counter()
    for _ in range(num_steps):
        state.step()
    elapsed = time.perf_counter() - start

    return num_steps * nx * ny / elapsed / 1e6


def benchmark_kernel(func, args, repeats=20):
    """Mean wall time of func(*args) in milliseconds (after one warmup call)."""
    func(*args)
    start = time.perf_counter()
    for _ in range(repeats):
        func(*args)
    return 1e3 * (time.perf_counter() - start) / repeats


def run_benchmarks(grid_sizes=None, num_steps=50):
    """Print an MLUPS table per model and a kernel comparison."""
    if grid_sizes is None:
        grid_sizes = [(128, 64), (256, 128), (512, 256)]

    print("Timestep throughput (MLUPS)")
    print("=" * 60)
    header = f"{'grid':>12}" + "".join(f"{name:>12}" for name in COLLISION_MODELS)
    print(header)

    results = {}
    for nx, ny in grid_sizes:
        row = [benchmark_state(nx, ny, name, num_steps) for name in COLLISION_MODELS]
        results[(nx, ny)] = dict(zip(COLLISION_MODELS, row))
        print(f"{f'{nx}x{ny}':>12}" + "".join(f"{v:>12.2f}" for v in row))

    nx, ny = grid_sizes[-1]
    rng = np.random.default_rng(0)
    rho = 1.0 + 0.01 * rng.standard_normal((ny, nx))
    ux = 0.05 * rng.standard_normal((ny, nx))
    uy = 0.05 * rng.standard_normal((ny, nx))
    f_eq = compute_equilibrium(rho, ux, uy)
    f = f_eq + 1e-4 * rng.standard_normal(f_eq.shape)

    print()
    print(f"Kernels on {nx}x{ny} (ms per call)")
    print("=" * 60)
    kernels = [
        ("equilibrium", compute_equilibrium, compute_equilibrium_fast, (rho, ux, uy)),
        ("bgk", bgk_collision, bgk_collision_fast, (f, f_eq, 0.8)),
        ("trt", trt_collision, trt_collision_fast, (f, f_eq, 0.8)),
        ("stream", stream, stream_fast, (f,)),
    ]
    for name, numpy_func, numba_func, args in kernels:
        t_numpy = benchmark_kernel(numpy_func, args)
        t_numba = benchmark_kernel(numba_func, args)
        print(f"{name:>12}: numpy {t_numpy:8.3f}  numba {t_numba:8.3f}  "
              f"speedup {t_numpy / t_numba:5.2f}x")

    return results


if __name__ == "__main__":
    run_benchmarks()
