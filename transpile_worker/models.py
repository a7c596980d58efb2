"""
Request and response models for the compile worker.
Uses Pydantic for validation and serialization.

Wire payloads use camelCase keys (``sourceCode``, ``engineVersion``); Python
code uses the snake_case attribute names. Both spellings are accepted on input.
"""

from typing import Any
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

PluginEntry = str | list[Any]
"""A plugin/preset entry: a bare name or a ``[name, options]`` pair."""


class WireModel(BaseModel):
    """Base for models exchanged with the controller."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransformConfig(BaseModel):
    """Transform configuration as written by the user.

    Only ``plugins`` and ``presets`` are interpreted here; every other key is
    passed through to the engine untouched.
    """

    model_config = ConfigDict(extra="allow")

    plugins: list[PluginEntry] | None = None
    presets: list[PluginEntry] | None = None

    def to_engine_dict(self) -> dict[str, Any]:
        """Engine-facing dict, omitting unset plugin/preset lists."""
        return self.model_dump(exclude_none=True)


class LoaderOptions(WireModel):
    """Per-request switches for the built-in capability plugins."""

    disable_builtin_plugins: bool = Field(
        default=False, description="Skip loop guard and dynamic CSS modules"
    )
    dynamic_css_modules: bool = Field(default=False, alias="dynamicCSSModules")
    infinite_loop_protection: bool = True
    compile_node_modules_with_env: bool = Field(
        default=False,
        description="Compile external library files with the conservative configuration",
    )


class CompileRequest(WireModel):
    """One compile call. Retries of the same request reuse this object."""

    source_code: str
    source_path: str
    config: TransformConfig = Field(default_factory=TransformConfig)
    engine_version: int = 7
    context_id: Any = None
    loader_options: LoaderOptions = Field(default_factory=LoaderOptions)
    transpiler_options: dict[str, Any] | None = None
    has_macros: bool = False


class DependencyRecord(BaseModel):
    """A dependency discovered in transformed output."""

    path: str
    type: Literal["direct", "dynamic"] = "direct"


class CompileResponse(BaseModel):
    """Successful compile output."""

    code: str
    dependencies: list[DependencyRecord] = Field(default_factory=list)


class TransformResult(BaseModel):
    """What a transform engine returns.

    ``metadata`` holds the dependency detective's findings under the
    ``"dependencies"`` key: ``{"strings": [...], "dynamic": [...]}``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    ast: Any | None = None
