"""
Abstract base classes for backends.

Defines the interface all backends must implement.
"""

from abc import ABC, abstractmethod
import numpy as np


class BackendBase(ABC):
    """Abstract base class for all backends."""
    
    name: str
    precision: str
    
    @abstractmethod
    def pinv(self, A: np.ndarray) -> np.ndarray:
        """
        Moore-Penrose pseudo-inverse of a square matrix.
        
        Backends compute internally using their native types, only
        converting at entry/exit.
        
        Parameters
        ----------
        A : ndarray, shape (p, p)
            Cross-product matrix (symmetric, possibly singular)
        
        Returns
        -------
        ndarray, shape (p, p)
            Finite pseudo-inverse (float64 numpy array)
        
        Raises
        ------
        SingularFitError
            If the decomposition fails or the result is not finite
        """
        pass
    
    def pinv_solve(self, A: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Minimum-norm solution of A x = b via the pseudo-inverse."""
        from ..exceptions import SingularFitError
        
        x = self.pinv(A) @ np.asarray(b, dtype=np.float64)
        if not np.all(np.isfinite(x)):
            raise SingularFitError(
                f"Pseudo-inverse solve produced non-finite values ({self.name})"
            )
        return x
    
    @abstractmethod
    def get_device_info(self) -> dict:
        """Get backend information."""
        pass


class CPUBackend(BackendBase):
    """CPU backend base class (always FP64)."""
    pass


class GPUBackendFP64(BackendBase):
    """GPU backend base class for FP64."""
    pass
