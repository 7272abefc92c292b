"""
GLM family definitions.

Link, weight and log-likelihood terms used by the transition steps.
Functions accept scalars or arrays and broadcast like NumPy ufuncs.
"""

import numpy as np
from abc import ABC, abstractmethod
from scipy.special import expit


class Family(ABC):
    """Base class for GLM families."""
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Family name."""
        pass
    
    @abstractmethod
    def linkinv(self, eta):
        """Inverse link: μ = g⁻¹(η)"""
        pass
    
    @abstractmethod
    def mu_eta(self, eta):
        """Derivative: dμ/dη (the IRLS weight for canonical links)"""
        pass
    
    @abstractmethod
    def log_likelihood(self, eta, y):
        """Per-observation log-likelihood at linear predictor η."""
        pass


class Binomial(Family):
    """
    Binomial family with logit link, labels coded as ±1.
    
    ``mu_eta`` is floored at machine epsilon outside [-30, 30], the
    thresholds R's binomial() uses, so IRLS weights never reach zero.
    """
    
    # Thresholds from R
    THRESH = 30.0
    MTHRESH = -30.0
    EPS = np.finfo(np.float64).eps
    
    @property
    def name(self) -> str:
        return "binomial"
    
    def linkinv(self, eta):
        """Logistic sigmoid σ(η) = 1/(1 + exp(-η))"""
        return expit(eta)
    
    def mu_eta(self, eta):
        """σ(η)σ(-η), or ε where |η| > 30."""
        eta = np.asarray(eta, dtype=np.float64)
        outside = (eta < self.MTHRESH) | (eta > self.THRESH)
        d = expit(eta) * expit(-eta)
        return np.where(outside, self.EPS, d)
    
    def log_likelihood(self, eta, y):
        """-ln(1 + exp(-y·η)) for y in {-1, +1}"""
        return -np.logaddexp(0.0, -np.multiply(y, eta))


binomial = Binomial()


__all__ = ["Family", "Binomial", "binomial"]
