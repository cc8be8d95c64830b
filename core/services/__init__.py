"""
core/services/
Camada de serviços do PortSentinel.

Contém lógica de negócio agnóstica à interface (CLI ou API):
- upstream_client : Cliente HTTP da autoridade de estado (containers, portas, registry).
- state_loader    : Coleta paralela dos feeds e normalização para o schema interno.
- job_service     : Orquestração de jobs de apply, rollback e restore.
"""
