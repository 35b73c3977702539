import importlib
import pkgutil

from fastapi import APIRouter, FastAPI
from loguru import logger


def discover_routers(package_name: str = "app.api") -> list[APIRouter]:
    """Collect the module-level ``router`` of every module under ``package_name``.

    Subpackages are scanned too. A module that fails to import is logged and
    skipped so one broken router does not take the whole API down.
    """
    package = importlib.import_module(package_name)
    package_path = getattr(package, "__path__", None)
    if not package_path:
        logger.warning(f"{package_name} is not a package, no routers registered")
        return []

    routers: list[APIRouter] = []
    for module_info in pkgutil.iter_modules(package_path):
        module_name = f"{package_name}.{module_info.name}"
        if module_info.ispkg:
            routers.extend(discover_routers(module_name))
            continue

        try:
            module = importlib.import_module(module_name)
        except ImportError:
            logger.exception(f"Could not import {module_name}")
            continue

        router = getattr(module, "router", None)
        if isinstance(router, APIRouter):
            routers.append(router)
            logger.debug(f"Discovered router in {module_name}")
    return routers


def register_routers(app: FastAPI, prefix: str = "/api") -> None:
    for router in discover_routers():
        app.include_router(router, prefix=prefix)
