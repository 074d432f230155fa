from health_agent.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
