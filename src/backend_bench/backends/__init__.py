from backend_bench.backends.base import (
    BackendDescriptor,
    ExecutionContext,
    InProcessContext,
    Measurement,
    SubprocessContext,
)

# Host backends run in-process; accelerator backends are separate build
# artifacts and always run isolated in their own process.
BACKENDS: tuple[BackendDescriptor, ...] = (
    BackendDescriptor(name="candle-cpu", device="cpu", feature="candle-cpu"),
    BackendDescriptor(name="candle-cuda", device="cuda", feature="candle-cuda", isolated=True),
    BackendDescriptor(name="candle-metal", device="metal", feature="candle-metal", isolated=True),
    BackendDescriptor(name="ndarray", device="cpu", feature="ndarray"),
    BackendDescriptor(
        name="ndarray-blas-accelerate", device="cpu", feature="ndarray-blas-accelerate"
    ),
    BackendDescriptor(name="ndarray-blas-netlib", device="cpu", feature="ndarray-blas-netlib"),
    BackendDescriptor(name="ndarray-blas-openblas", device="cpu", feature="ndarray-blas-openblas"),
    BackendDescriptor(name="tch-cpu", device="cpu", feature="tch-cpu"),
    BackendDescriptor(name="tch-gpu", device="cuda", feature="tch-gpu", isolated=True),
    BackendDescriptor(name="wgpu", device="gpu", feature="wgpu", isolated=True),
    BackendDescriptor(name="wgpu-fusion", device="gpu", feature="wgpu-fusion", isolated=True),
)

__all__ = [
    "BACKENDS",
    "BackendDescriptor",
    "ExecutionContext",
    "InProcessContext",
    "Measurement",
    "SubprocessContext",
]
