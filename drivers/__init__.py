"""
drivers/
Implementações concretas de runtime de containers.

Cada arquivo aqui implementa um runtime que herda de
core.base_runtime.ContainerRuntime.

Implementados:
- docker_cli.py  (CLI do Docker via subprocess)
"""

from .docker_cli import DockerCLIRuntime

__all__ = ["DockerCLIRuntime"]
