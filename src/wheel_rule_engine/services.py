from __future__ import annotations

from dataclasses import dataclass

from wheel_rule_engine.config import GeneratorConfig
from wheel_rule_engine.emitter import RuleEmitter
from wheel_rule_engine.internal.builtin_strategies import (
    FileUriWheelFetchStrategy,
    HttpWheelFetchStrategy,
)
from wheel_rule_engine.internal.inspector import WheelMetadataInspector
from wheel_rule_engine.internal.orchestration import StrategyChainWheelFetcher
from wheel_rule_engine.internal.resolver import PipResolver
from wheel_rule_engine.model.platforms import PlatformClassifier
from wheel_rule_engine.vendoring import VendoringPolicy


# -------------------------
# service wiring
# -------------------------


@dataclass(frozen=True, slots=True)
class GeneratorServices:
    """
    Collaborators and policies for one run.

    The pipeline depends on this object, not on how each piece is built, so
    tests can substitute any of them.
    """

    resolver: PipResolver
    inspector: WheelMetadataInspector
    fetcher: StrategyChainWheelFetcher
    vendoring: VendoringPolicy
    classifier: PlatformClassifier
    emitter: RuleEmitter


def build_services(config: GeneratorConfig) -> GeneratorServices:
    fetcher = StrategyChainWheelFetcher(
        [
            FileUriWheelFetchStrategy(),
            HttpWheelFetchStrategy(timeout_s=config.download_timeout_s),
        ]
    )
    return GeneratorServices(
        resolver=PipResolver(python_path=config.python_path, verbose=config.verbose),
        inspector=WheelMetadataInspector(
            python_path=config.python_path,
            wheel_tool_path=config.wheel_tool_path,
            verbose=config.verbose,
        ),
        fetcher=fetcher,
        vendoring=VendoringPolicy(
            wheel_dir=config.full_wheel_dir,
            prefer_vendoring=config.prefers_vendoring,
        ),
        classifier=PlatformClassifier(config.platforms),
        emitter=RuleEmitter(
            shape=config.target_shape,
            rules_workspace=config.rules_workspace,
            workspace_prefix=config.workspace_prefix,
            wheel_dir=config.wheel_dir,
        ),
    )
