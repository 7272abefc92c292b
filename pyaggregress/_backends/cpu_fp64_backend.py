"""
CPU backend using NumPy + SciPy.

This is the reference implementation.
"""

import numpy as np
from scipy.linalg import pinv, LinAlgError

from .base import CPUBackend
from ..exceptions import SingularFitError


class CPUBackendFP64(CPUBackend):
    """
    CPU backend using NumPy + SciPy.
    
    Always uses FP64 precision.
    """
    
    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"
    
    def pinv(self, A: np.ndarray) -> np.ndarray:
        """Pseudo-inverse via LAPACK SVD."""
        A = np.asarray(A, dtype=np.float64)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"Expected a square matrix, got shape {A.shape}")
        
        try:
            A_pinv = pinv(A, check_finite=True)
        except (ValueError, LinAlgError) as e:
            raise SingularFitError(f"Pseudo-inverse failed: {e}") from e
        
        if not np.all(np.isfinite(A_pinv)):
            raise SingularFitError("Pseudo-inverse is not finite")
        return A_pinv
    
    def get_device_info(self) -> dict:
        """Get backend information."""
        import scipy
        return {
            'backend': 'cpu',
            'precision': 'fp64',
            'library': f'NumPy {np.__version__}, SciPy {scipy.__version__}',
        }
