"""Configuration Management for CLI Settings"""

import os
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console

console = Console()


class ConfigManager:
    """Manage CLI configuration stored as YAML in the user's home directory"""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Path(
            os.getenv("TENANTJOBS_CONFIG_DIR", Path.home() / ".tenantjobs")
        )
        self.config_file = self.config_dir / "config.yaml"

    def load_config(self) -> dict[str, Any]:
        """Load configuration, layered over the defaults"""
        config = self.get_default_config()
        if not self.config_file.exists():
            return config

        try:
            with open(self.config_file) as f:
                stored = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            console.print(f"[red]Error loading config: {e}[/red]")
            return config

        for section, values in stored.items():
            if isinstance(values, dict) and isinstance(config.get(section), dict):
                config[section].update(values)
            else:
                config[section] = values
        return config

    def save_config(self, config: dict[str, Any]):
        """Save configuration to file"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            yaml.safe_dump(config, f, default_flow_style=False)

    def get_default_config(self) -> dict[str, Any]:
        """Get default configuration"""
        return {
            "api": {
                "base_url": os.getenv("TENANTJOBS_API_URL", "http://localhost:8000"),
                "timeout": 30,
                "headers": {},
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'api.base_url')"""
        value: Any = self.load_config()
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def set(self, key: str, value: Any):
        """Set configuration value using dot notation"""
        config = self.load_config()
        *parents, leaf = key.split(".")

        current = config
        for part in parents:
            current = current.setdefault(part, {})
        current[leaf] = value

        self.save_config(config)

    def set_identity(self, user_id: str, tenant_id: int):
        """Store the dev-mode identity headers sent with every request"""
        self.set("api.headers", {"X-User-ID": user_id, "X-Tenant-ID": str(tenant_id)})


# Global config manager instance
config = ConfigManager()
