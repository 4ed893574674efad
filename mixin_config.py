from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = {"applicator": {"log_skipped_members": True}, "decorators": {"default_run_limit": 1, "log_suppressed_calls": False}, "identity_store": {"allow_strong_fallback": True}}

@dataclass
class ApplicatorConfig:
    log_skipped_members: bool

@dataclass
class DecoratorConfig:
    default_run_limit: int
    log_suppressed_calls: bool

@dataclass
class IdentityStoreConfig:
    allow_strong_fallback: bool

@dataclass
class MixinConfig:
    applicator: ApplicatorConfig
    decorators: DecoratorConfig
    identity_store: IdentityStoreConfig

    @classmethod
    def load(cls, config_path = "mixin_config.yaml"):
        # Allow environment variable override for the config location
        if "MIXINS_CONFIG" in os.environ:
            config_path = os.environ["MIXINS_CONFIG"]

        config_dict = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}
        config_file = Path(config_path)
        if config_file.exists():
            try:
                with open(config_file) as f:
                    yaml_config = yaml.safe_load(f)
            except yaml.YAMLError as e:
                logger.warning("Ignoring malformed %s: %s", config_file, e)
                yaml_config = None

            if isinstance(yaml_config, dict):
                # Section-level merge so a partial file keeps the other defaults
                for section, values in yaml_config.items():
                    if section in config_dict and isinstance(values, dict):
                        config_dict[section].update(values)

        return cls(
            applicator=ApplicatorConfig(**config_dict["applicator"]),
            decorators=DecoratorConfig(**config_dict["decorators"]),
            identity_store=IdentityStoreConfig(**config_dict["identity_store"]),
        )

config = MixinConfig.load()
