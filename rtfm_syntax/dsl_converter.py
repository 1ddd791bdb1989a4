"""
App converter utilities.

Provides:
- load_app(): Read a configuration file and parse it
- ast_to_dict(): Convert an App AST to plain data (fragments as text)
- app_to_yaml(): YAML dump of ast_to_dict() for code generators and diffs
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from .dsl_ast import App, Idle, Static, Statics, Task
from .dsl_parser import parse

LOGGER = logging.getLogger(__name__)


def load_app(path) -> App:
    """
    Load and parse a configuration file.

    Args:
        path: Path to a file holding one `{ ... }` configuration block

    Returns:
        Parsed App AST
    """
    path = Path(path)
    LOGGER.debug("loading app configuration from %s", path)
    return parse(path.read_text())


def ast_to_dict(app: App) -> Dict[str, Any]:
    """Convert an App AST to the dict format used by code generators."""
    result = {
        'device': str(app.device),
        'init': {'path': str(app.init.path)},
        'idle': convert_idle(app.idle),
    }

    if app.resources:
        result['resources'] = convert_statics(app.resources)

    if app.tasks:
        result['tasks'] = {name: convert_task(task) for name, task in sorted(app.tasks.items())}

    return result


def convert_idle(idle: Idle) -> Dict[str, Any]:
    idle_dict = {'path': str(idle.path)}
    if idle.locals:
        idle_dict['locals'] = convert_statics(idle.locals)
    if idle.resources:
        idle_dict['resources'] = sorted(idle.resources)
    return idle_dict


def convert_statics(statics: Statics) -> Dict[str, Any]:
    return {name: convert_static(static) for name, static in sorted(statics.items())}


def convert_static(static: Static) -> Dict[str, str]:
    return {
        'type': str(static.ty),
        'value': str(static.expr),
    }


def convert_task(task: Task) -> Dict[str, Any]:
    # Absent enabled/priority are left out, not defaulted
    task_dict = {}
    if task.enabled is not None:
        task_dict['enabled'] = task.enabled
    if task.priority is not None:
        task_dict['priority'] = task.priority
    task_dict['resources'] = sorted(task.resources)
    return task_dict


def app_to_yaml(app: App) -> str:
    """Dump an App AST as YAML."""
    return yaml.safe_dump(ast_to_dict(app), sort_keys=False, default_flow_style=False)
