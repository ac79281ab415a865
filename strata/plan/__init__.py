from ._models import Action, AttributeChange, Plan, PlanOperation
from .planner import Planner

__all__ = [
    "Action",
    "AttributeChange",
    "Plan",
    "PlanOperation",
    "Planner",
]
