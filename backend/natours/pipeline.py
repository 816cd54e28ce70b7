"""
Natours API — Pipeline Builder
===============================

What:  Assembles the request pipeline in a fixed, named order.
How:   Each stage is registered under a ``Stage`` member. The member's value,
       not the order of ``register`` calls, decides where the stage runs.
       ``build`` checks that the required stages (plus any declared with
       ``require``) are present and installs the middleware on a
       FastAPI app.

Execution order (outermost first):

    CORS → STATIC_ASSETS → SECURITY_HEADERS → REQUEST_CONTEXT → ACCESS_LOG
        → ERROR_CONVERSION → RATE_LIMIT → RAW_BODY → BODY_PARSER
        → SANITIZATION → COMPRESSION → router

Starlette runs the middleware added last first, so ``build`` adds stages
innermost first.
"""

import logging
from enum import IntEnum
from typing import Any, Dict, List, Tuple, Type

from fastapi import FastAPI

from natours.exceptions import PipelineAssemblyError

logger = logging.getLogger(__name__)


class Stage(IntEnum):
    CORS = 10
    STATIC_ASSETS = 20
    SECURITY_HEADERS = 30
    REQUEST_CONTEXT = 40
    ACCESS_LOG = 50
    ERROR_CONVERSION = 60
    RATE_LIMIT = 70
    RAW_BODY = 80
    BODY_PARSER = 90
    SANITIZATION = 100
    COMPRESSION = 110


REQUIRED_STAGES = (
    Stage.REQUEST_CONTEXT,
    Stage.ERROR_CONVERSION,
    Stage.BODY_PARSER,
    Stage.SANITIZATION,
)


class PipelineBuilder:
    """
    Collects stage registrations and installs them in ``Stage`` order.

    Usage:
        builder = PipelineBuilder()
        builder.register(Stage.BODY_PARSER, BodyParserMiddleware, limit=10240)
        builder.register(Stage.RAW_BODY, RawBodyMiddleware, path="/webhook-checkout")
        ...
        builder.build(app)  # RAW_BODY still runs before BODY_PARSER
    """

    def __init__(self) -> None:
        self._stages: Dict[Stage, Tuple[Type[Any], Dict[str, Any]]] = {}
        self._built = False
        self._requirements: Dict[Stage, str] = {}

    def register(self, stage: Stage, middleware_cls: Type[Any], **options: Any) -> "PipelineBuilder":
        if self._built:
            raise PipelineAssemblyError("Pipeline already built; no more stages can be registered")
        if stage in self._stages:
            raise PipelineAssemblyError(f"Stage {stage.name} registered twice")
        self._stages[stage] = (middleware_cls, options)
        return self

    def require(self, stage: Stage, reason: str) -> "PipelineBuilder":
        """Make ``build`` fail unless ``stage`` is registered, naming ``reason``."""
        self._requirements[stage] = reason
        return self

    def stages(self) -> List[Stage]:
        """Registered stages in execution order."""
        return sorted(self._stages)

    def validate(self) -> None:
        missing = [stage.name for stage in REQUIRED_STAGES if stage not in self._stages]
        if missing:
            raise PipelineAssemblyError(f"Missing required stages: {', '.join(missing)}")
        for stage, reason in self._requirements.items():
            if stage not in self._stages:
                raise PipelineAssemblyError(f"Stage {stage.name} is required: {reason}")

    def build(self, app: FastAPI) -> FastAPI:
        if self._built:
            raise PipelineAssemblyError("Pipeline already built")
        self.validate()

        for stage in reversed(self.stages()):
            middleware_cls, options = self._stages[stage]
            app.add_middleware(middleware_cls, **options)

        self._built = True
        logger.debug("Pipeline: %s", " → ".join(stage.name for stage in self.stages()))
        return app
