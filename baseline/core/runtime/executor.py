"""
Executor de convergencia: recorre el plan en orden, estrictamente secuencial.

Por recurso: Pending → Checked → {NoOp | Applying → {Applied | RetryWait → Applying | Failed}}
y Skipped para todo lo que queda tras un fallo fatal.

El executor nunca toca el host: todo efecto pasa por provider.apply.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from baseline.core.errors import ProviderError, ProviderUnavailableError
from baseline.core.infra import Provider, ProviderRegistry
from baseline.core.plan import ConvergencePlan
from baseline.core.resources import Resource, ResourceKind
from baseline.core.runtime.report import Action, ConvergenceReport, ResourceOutcome

logger = logging.getLogger(__name__)


class ResourceStatus(str, Enum):
    """Estados del ciclo de vida de un recurso. Solo se trazan (DEBUG); el resultado vive en ResourceOutcome."""
    PENDING = "pending"
    CHECKED = "checked"
    APPLYING = "applying"
    RETRY_WAIT = "retry_wait"
    NOOP = "noop"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Reintentos acotados: solo servicios (p. ej. restart) se reintentan.
    Paquetes, archivos y firewall fallan al primer intento.
    """
    service_attempts: int = 3
    delay: float = 2.0

    def __post_init__(self):
        if self.service_attempts < 1:
            raise ValueError("service_attempts debe ser >= 1")
        if self.delay < 0:
            raise ValueError("delay no puede ser negativo")

    def attempts_for(self, kind: ResourceKind) -> int:
        return self.service_attempts if kind == ResourceKind.SERVICE else 1


class ConvergenceExecutor:
    """
    Aplica un plan ya validado.

    Args:
        providers: provider por tipo de recurso
        retry_policy: política de reintentos de servicios
        dry_run: consulta estado pero nunca llama a apply
        sleep: función de espera entre reintentos
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        retry_policy: Optional[RetryPolicy] = None,
        dry_run: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.providers = providers
        self.retry_policy = retry_policy or RetryPolicy()
        self.dry_run = dry_run
        self.sleep = sleep

    def execute(self, plan: ConvergencePlan) -> ConvergenceReport:
        report = ConvergenceReport(dry_run=self.dry_run)
        aborted = False
        for resource in plan:
            if aborted:
                self._transition(resource, ResourceStatus.SKIPPED)
                report.record(ResourceOutcome(resource.key, Action.SKIPPED))
                continue

            outcome = self._converge(resource)
            report.record(outcome)
            if outcome.action == Action.FAILED:
                logger.error("Fallo fatal en %s: %s", resource.key, outcome.error)
                aborted = True

        counts = report.counts()
        logger.info(
            "Convergencia terminada: %s",
            ", ".join(f"{a.value}={n}" for a, n in counts.items() if n),
        )
        return report

    def _transition(self, resource: Resource, status: ResourceStatus) -> None:
        # Solo traza: el resultado se registra en ResourceOutcome
        logger.debug("%s → %s", resource.key, status.value)

    def _converge(self, resource: Resource) -> ResourceOutcome:
        self._transition(resource, ResourceStatus.PENDING)
        try:
            provider = self.providers.for_resource(resource)
            observed = provider.current_state(resource)
            self._transition(resource, ResourceStatus.CHECKED)
            satisfied = resource.desired.satisfied_by(observed)
        except ProviderError as e:
            self._transition(resource, ResourceStatus.FAILED)
            return ResourceOutcome(resource.key, Action.FAILED, attempts=0, error=str(e))
        except Exception as e:
            logger.exception("Error inesperado consultando %s", resource.key)
            self._transition(resource, ResourceStatus.FAILED)
            return ResourceOutcome(resource.key, Action.FAILED, attempts=0, error=f"{type(e).__name__}: {e}")

        if satisfied:
            self._transition(resource, ResourceStatus.NOOP)
            return ResourceOutcome(resource.key, Action.NOOP)

        action = Action.UPDATED if observed.exists else Action.CREATED
        if self.dry_run:
            logger.info("(dry-run) %s: %s", resource.key, action.value)
            return ResourceOutcome(resource.key, action, attempts=0)
        return self._apply_with_retry(provider, resource, action)

    def _apply_with_retry(self, provider: Provider, resource: Resource, action: Action) -> ResourceOutcome:
        max_attempts = self.retry_policy.attempts_for(resource.kind)
        error = None
        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            self._transition(resource, ResourceStatus.APPLYING)
            try:
                result = provider.apply(resource)
            except ProviderUnavailableError as e:
                # Problema de entorno: no se reintenta
                error = str(e)
                break
            except ProviderError as e:
                error = str(e)
            except Exception as e:
                logger.exception("Error inesperado aplicando %s", resource.key)
                error = f"{type(e).__name__}: {e}"
            else:
                if not result.changed:
                    self._transition(resource, ResourceStatus.NOOP)
                    return ResourceOutcome(resource.key, Action.NOOP, attempts=attempt)
                self._transition(resource, ResourceStatus.APPLIED)
                return ResourceOutcome(resource.key, action, attempts=attempt)

            if attempt < max_attempts:
                logger.warning(
                    "Fallo aplicando %s (intento %d/%d): %s", resource.key, attempt, max_attempts, error
                )
                self._transition(resource, ResourceStatus.RETRY_WAIT)
                self.sleep(self.retry_policy.delay)

        self._transition(resource, ResourceStatus.FAILED)
        return ResourceOutcome(resource.key, Action.FAILED, attempts=attempt, error=error)
