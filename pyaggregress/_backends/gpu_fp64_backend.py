"""
GPU backend using PyTorch with FP64 precision.

Transition states are float64 throughout, so there is no FP32 variant.
"""

import numpy as np
import warnings
from typing import Optional

from .base import GPUBackendFP64
from ..exceptions import SingularFitError


class PyTorchBackendFP64(GPUBackendFP64):
    """
    PyTorch backend with FP64 precision.
    
    Runs on CUDA when available and falls back to the torch CPU device
    otherwise.
    """
    
    def __init__(self, device: Optional[str] = None):
        """Initialize PyTorch FP64 backend."""
        self.name = "pytorch_fp64"
        self.precision = "fp64"
        
        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for GPU backend. "
                "Install: pip install torch"
            )
        
        if device == 'mps':
            raise RuntimeError(
                "FP64 not supported on Apple Metal. "
                "Use the CPU backend."
            )
        
        if device is None:
            if torch.cuda.is_available():
                device = 'cuda'
            else:
                warnings.warn("No CUDA GPU available, using CPU")
                device = 'cpu'
        
        self.device = torch.device(device)
    
    def pinv(self, A: np.ndarray) -> np.ndarray:
        """Pseudo-inverse via torch.linalg.pinv (hermitian=True)."""
        torch = self.torch
        A = np.asarray(A, dtype=np.float64)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise ValueError(f"Expected a square matrix, got shape {A.shape}")
        if not np.all(np.isfinite(A)):
            raise SingularFitError("Cross-product matrix contains NaN or Inf")
        
        A_gpu = torch.from_numpy(A).double().to(self.device)
        try:
            A_pinv = torch.linalg.pinv(A_gpu, hermitian=True)
        except RuntimeError as e:
            raise SingularFitError(f"Pseudo-inverse failed: {e}") from e
        
        A_pinv = A_pinv.cpu().numpy()
        if not np.all(np.isfinite(A_pinv)):
            raise SingularFitError("Pseudo-inverse is not finite")
        return A_pinv
    
    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': 'gpu' if self.device.type == 'cuda' else 'cpu',
            'precision': 'fp64',
            'device': str(self.device),
            'library': f'PyTorch {self.torch.__version__}',
        }
