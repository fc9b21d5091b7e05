from tabbridge.app.bootstrap import build_connector, build_runtime
from tabbridge.app.runtime import BridgeRuntime

__all__ = ["BridgeRuntime", "build_connector", "build_runtime"]
