"""
core/exceptions.py
──────────────────
Taxonomia de erros do PortSentinel.

Classificador e Plan Builder nunca lançam em entradas normais: incerteza
é representada como dado (categoria "unknown", ação "manual-review").
As exceções abaixo ficam reservadas para estado estruturalmente inválido
e para o caminho de mutação do executor.

Hierarquia::

    PortSentinelError
    ├── ContractViolation        feed upstream malformado (fatal, sem retry)
    ├── UpstreamTransportError   falha de transporte com a autoridade upstream
    ├── ValidationError          plano/ação malformado (antes de qualquer mutação)
    ├── PreconditionFailed       estado vivo diverge do "from" do plano
    ├── RuntimeCommandError      exit != 0 do runtime (pode deixar estado parcial)
    ├── GateDenied               flag de consentimento ausente
    ├── UserAborted              confirmação negativa explícita (parada limpa)
    ├── NotFoundError            job ou snapshot inexistente
    └── ConflictError            operação duplicada (ex: segundo rollback)
"""

from __future__ import annotations


class PortSentinelError(Exception):
    """Exceção base de todos os erros de domínio do PortSentinel."""


class ContractViolation(PortSentinelError):
    """Um feed da autoridade upstream não respeita o contrato de formato."""


class UpstreamTransportError(PortSentinelError):
    """A autoridade upstream não respondeu (rede, timeout, HTTP != 2xx)."""


class ValidationError(PortSentinelError):
    """Plano, ação ou intenção do usuário estruturalmente inválidos."""


class PreconditionFailed(PortSentinelError):
    """O estado vivo do runtime não corresponde ao que o plano assumiu."""


class RuntimeCommandError(PortSentinelError):
    """
    Comando do runtime de containers terminou com exit code diferente de zero.

    Carrega o comando, o código de saída e a saída combinada
    (stdout + stderr) para fins de auditoria.
    """

    def __init__(self, command: list[str], returncode: int, output: str) -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"{' '.join(command)} falhou (code {returncode}): {output}"
        )


class GateDenied(PortSentinelError):
    """Um portão de segurança obrigatório não foi satisfeito."""

    def __init__(self, gate: str, reason: str) -> None:
        self.gate = gate
        self.reason = reason
        super().__init__(f"Portão '{gate}' negado: {reason}")


class UserAborted(PortSentinelError):
    """O operador respondeu negativamente a uma confirmação explícita."""

    def __init__(self, gate: str) -> None:
        self.gate = gate
        super().__init__(f"Execução abortada pelo usuário no portão '{gate}'.")


class NotFoundError(PortSentinelError):
    """Job ou snapshot solicitado não existe."""


class ConflictError(PortSentinelError):
    """A operação conflita com um job existente (ex: rollback duplicado)."""

    def __init__(self, message: str, existing_job_id: str | None = None) -> None:
        self.existing_job_id = existing_job_id
        super().__init__(message)
