"""
Backend selection and management.

Backends carry out the dense linear algebra of the finalize steps
(pseudo-inverses of cross-product matrices). The CPU backend is always
available; the PyTorch backend needs torch installed.

Selection order for ``get_backend('auto')``:
    1. The ``PYAGGREGRESS_BACKEND`` environment variable ('cpu' or 'pytorch').
    2. The CPU backend.
"""

import os
import warnings

from .base import BackendBase

ENV_VAR = "PYAGGREGRESS_BACKEND"

try:
    from .cpu_fp64_backend import CPUBackendFP64
    CPU_AVAILABLE = True
except ImportError:
    CPU_AVAILABLE = False
    warnings.warn("CPU backend unavailable - installation error!")

try:
    import torch  # noqa: F401
    from .gpu_fp64_backend import PyTorchBackendFP64
    PYTORCH_AVAILABLE = True
except ImportError:
    PYTORCH_AVAILABLE = False


def _cuda_available() -> bool:
    if not PYTORCH_AVAILABLE:
        return False
    import torch
    return torch.cuda.is_available()


def get_backend(backend: str = 'auto') -> BackendBase:
    """
    Get computational backend.
    
    Parameters
    ----------
    backend : str
        Backend selection:
        - 'auto': ``$PYAGGREGRESS_BACKEND`` if set, else 'cpu'
        - 'cpu': NumPy/SciPy (FP64)
        - 'pytorch': PyTorch FP64 (CUDA if present)
    
    Returns
    -------
    BackendBase
        Backend instance
    
    Examples
    --------
    >>> backend = get_backend('cpu')
    >>> backend.name
    'cpu_fp64'
    """
    if isinstance(backend, BackendBase):
        return backend
    
    name = backend.strip().lower()
    
    if name == 'auto':
        env = os.environ.get(ENV_VAR, "").strip().lower()
        if env in ('', 'auto'):
            name = 'cpu'
        elif env in ('cpu', 'pytorch'):
            name = env
        else:
            raise ValueError(
                f"Invalid {ENV_VAR}='{env}'. Valid options: 'cpu', 'pytorch'"
            )
    
    if name == 'cpu':
        if not CPU_AVAILABLE:
            raise RuntimeError("CPU backend unavailable!")
        return CPUBackendFP64()
    
    elif name == 'pytorch':
        if not PYTORCH_AVAILABLE:
            raise RuntimeError(
                "PyTorch backend unavailable.\n"
                "Install: pip install torch"
            )
        return PyTorchBackendFP64()
    
    else:
        raise ValueError(
            f"Unknown backend: '{backend}'\n"
            f"Valid options: 'auto', 'cpu', 'pytorch'"
        )


def list_available_backends() -> list:
    """List names of available backends."""
    backends = []
    if CPU_AVAILABLE:
        backends.append('cpu')
    if PYTORCH_AVAILABLE:
        backends.append('pytorch')
    return backends


def print_backend_info():
    """Print detailed backend information (diagnostic)."""
    print("pyaggregress Backend Status")
    print("=" * 50)
    print(f"\nAvailable Backends:")
    print(f"  CPU (FP64):     {'✓' if CPU_AVAILABLE else '✗'} - SciPy pseudo-inverse")
    print(f"  PyTorch (FP64): {'✓' if PYTORCH_AVAILABLE else '✗'} - torch.linalg.pinv")
    print(f"  CUDA device:    {'✓' if _cuda_available() else '✗'}")
    
    print(f"\nSelected Backend ('auto'):")
    try:
        backend = get_backend('auto')
        print(f"  {backend.name}")
    except (ValueError, RuntimeError) as e:
        print(f"  Error: {e}")


__all__ = [
    'get_backend',
    'list_available_backends',
    'print_backend_info',
    'BackendBase',
    'CPU_AVAILABLE',
    'PYTORCH_AVAILABLE',
    'ENV_VAR',
]


if __name__ == "__main__":
    print_backend_info()
