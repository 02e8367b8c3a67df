"""
Generalization-error estimators and the method dispatcher.

Every estimator turns the fold results of one instantiated resampling scheme
into a point estimate and a (1 - alpha) confidence interval. Estimators are
registered by name; each declares the scheme kinds it is valid for and
whether it needs pointwise losses. The registry also maps a scheme kind to
its default method, which is how ``method="auto"`` is resolved.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Dict, List, Tuple, Type

import numpy as np
from ezcolorlog import root_logger as logger

from ..core.results import GEEstimate, ResampleResult
from ..errors import IncompatibilityError, IncompleteResultError
from ..utils import check_alpha


class Estimator(ABC):
    """Abstract base for interval estimation methods"""

    name: ClassVar[str] = ""
    scheme_kinds: ClassVar[Tuple[str, ...]] = ()
    default_for: ClassVar[Tuple[str, ...]] = ()  # scheme kinds this is the automatic choice for
    requires_pointwise: ClassVar[bool] = False

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.name})"

    def check(self, result: ResampleResult) -> None:
        """Raise if this method cannot be applied to ``result``"""
        if result.scheme_kind not in self.scheme_kinds:
            raise IncompatibilityError(
                f"Method '{self.name}' is not valid for resampling '{result.scheme_kind}'. "
                f"Valid resamplings: {list(self.scheme_kinds)}"
            )
        if self.requires_pointwise and not result.has_pointwise:
            raise IncompatibilityError(
                f"Method '{self.name}' needs pointwise losses but measure '{result.measure_id}' has none"
            )
        if not result.is_complete:
            raise IncompleteResultError(
                result.iters - len([f for f in result.fold_results if f.ok]),
                result.iters,
                f"method '{self.name}' needs every iteration",
            )

    def estimate(self, result: ResampleResult, alpha: float = 0.05) -> GEEstimate:
        alpha = check_alpha(alpha)
        self.check(result)
        return self._estimate(result, alpha)

    @abstractmethod
    def _estimate(self, result: ResampleResult, alpha: float) -> GEEstimate:
        pass

    def make_estimate(
        self, result: ResampleResult, estimate: float, ci: Tuple[float, float], se: float, alpha: float, **extra
    ) -> GEEstimate:
        return GEEstimate(
            estimate=float(estimate),
            lower=float(ci[0]),
            upper=float(ci[1]),
            alpha=alpha,
            method=self.name,
            scheme_kind=result.scheme_kind,
            measure_id=result.measure_id,
            se=float(se),
            extra=extra,
        )


class EstimatorRegistry:
    """Registry for interval methods, keyed by method name and by scheme kind"""

    _estimators: Dict[str, Type[Estimator]] = {}
    _defaults: Dict[str, str] = {}

    @classmethod
    def register(cls, estimator_class: Type[Estimator]) -> Type[Estimator]:
        """Decorator to register an estimator class."""
        if not estimator_class.name:
            raise ValueError(f"Estimator {estimator_class.__name__} must define a 'name' class attribute")
        cls._estimators[estimator_class.name] = estimator_class
        for kind in estimator_class.default_for:
            if kind not in estimator_class.scheme_kinds:
                raise ValueError(f"{estimator_class.__name__} cannot be the default for '{kind}' it does not support")
            cls._defaults[kind] = estimator_class.name
        return estimator_class

    @classmethod
    def get(cls, name: str) -> Estimator:
        if name not in cls._estimators:
            raise IncompatibilityError(f"Unknown method: {name}. Available: {sorted(cls._estimators)}")
        return cls._estimators[name]()

    @classmethod
    def default_method(cls, scheme_kind: str) -> str:
        if scheme_kind not in cls._defaults:
            raise IncompatibilityError(f"No matching method for resampling '{scheme_kind}'")
        return cls._defaults[scheme_kind]

    @classmethod
    def methods_for(cls, scheme_kind: str) -> List[str]:
        return sorted(name for name, est in cls._estimators.items() if scheme_kind in est.scheme_kinds)

    @classmethod
    def list_methods(cls) -> List[str]:
        return sorted(cls._estimators)


def resolve_method(result: ResampleResult, method: str = "auto") -> Estimator:
    """Pick the estimator for a resample result; ``"auto"`` uses the scheme kind's default"""
    if method == "auto":
        method = EstimatorRegistry.default_method(result.scheme_kind)
        logger.info(f"Using method '{method}' for resampling '{result.scheme_kind}'")
    return EstimatorRegistry.get(method)


def infer(result: ResampleResult, method: str = "auto", alpha: float = 0.05) -> GEEstimate:
    """Compute a generalization-error estimate with a (1 - alpha) confidence interval.

    Args:
        result: fold results of one instantiated resampling scheme
        method: interval method name, or "auto" to pick it from the scheme kind
        alpha: significance level of the two-sided interval

    Raises:
        IncompatibilityError: unknown method, no method for the scheme kind, or the
            method does not support the scheme kind / the measure's loss shape
        IncompleteResultError: some iterations have no result
        ConfigurationError: alpha outside (0, 1)
    """
    return resolve_method(result, method).estimate(result, alpha)


def methods_for(scheme_kind: str) -> List[str]:
    return EstimatorRegistry.methods_for(scheme_kind)


###############################################################################
# Shared helpers --------------------------------------------------------------
###############################################################################


def delta_transform(theta: float, se_theta: float, transform: str) -> Tuple[float, float]:
    """Map a mean pointwise loss and its standard error through the measure's transform.

    For ``sqrt`` (e.g. RMSE from squared errors) the delta method gives
    se = se_theta / (2 * sqrt(theta)).
    """
    match transform:
        case "identity":
            return theta, se_theta
        case "sqrt":
            if theta <= 0:
                return 0.0, 0.0
            root = float(np.sqrt(theta))
            return root, se_theta / (2 * root)
        case _:
            raise IncompatibilityError(f"No delta method for transform '{transform}'")
