from fastapi import Request

from mockupgen.features.access.service import AccessEvaluator


def get_access_evaluator(request: Request) -> AccessEvaluator:
    """The evaluator built at app construction (see main.create_app)."""
    return request.app.state.access_evaluator
