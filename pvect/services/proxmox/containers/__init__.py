"""Proxmox LXC container management.

- TemplateManager: Template catalog, selection and download
- ContainerLifecycle: Create, mount, start, exec, stop, destroy
"""
from .templates import TemplateManager
from .lifecycle import ContainerLifecycle

__all__ = [
    'TemplateManager',
    'ContainerLifecycle',
]
