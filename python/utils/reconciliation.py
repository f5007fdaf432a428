"""
Stubborn image reconciliation.

Deletes a batch of images, diagnoses the ones the engine refuses to delete
(in use by containers, layered on by child images, or refused for another
reason), and walks the operator through escalating remediation:

    Initial -> FirstPass -> Diagnosed -> AwaitContainerRemovalDecision
            -> Retried -> AwaitForceDecision -> Terminal

Every escalation (removing containers, force deleting) is confirmed by the
operator after the diagnosis has been shown. Every image ends the run either
deleted or kept, and kept images are reported with their blocking causes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from utils.error_utils import DeleteBlocked, RemediationDeclined
from utils.inventory import ContainerResource, ImageInventory, ImageResource, short_id
from utils.logging_utils import get_logger
from utils.report_utils import format_diagnosis_table, format_reconciliation_summary

logger = get_logger(__name__)


class BlockCause(Enum):
    """Why the engine refused to delete an image"""

    CONTAINER = "blocked-by-container"
    CHILD = "blocked-by-child"
    OTHER = "blocked-other"


class BatchState(Enum):
    INITIAL = "initial"
    FIRST_PASS = "first-pass"
    DIAGNOSED = "diagnosed"
    AWAIT_CONTAINER_REMOVAL_DECISION = "await-container-removal-decision"
    RETRIED = "retried"
    AWAIT_FORCE_DECISION = "await-force-decision"
    TERMINAL = "terminal"


@dataclass
class Diagnosis:
    """Dependency facts explaining why an image resisted deletion"""

    image_id: str
    image: Optional[ImageResource] = None
    containers: List[ContainerResource] = field(default_factory=list)
    children: List[ImageResource] = field(default_factory=list)
    engine_message: str = ""

    @property
    def causes(self) -> List[BlockCause]:
        causes = []
        if self.containers:
            causes.append(BlockCause.CONTAINER)
        if self.children:
            causes.append(BlockCause.CHILD)
        return causes or [BlockCause.OTHER]

    @property
    def blocked_by_container(self) -> bool:
        return bool(self.containers)

    def describe(self) -> str:
        facts = []
        if self.containers:
            facts.append(f"Used by {len(self.containers)} container(s)")
        if self.children:
            facts.append(f"Has {len(self.children)} child layer(s)")
        if not facts:
            facts.append(self.engine_message or "Engine refused without reporting a dependent")
        return "; ".join(facts)

    def to_error(self) -> DeleteBlocked:
        return DeleteBlocked(self.image_id, [cause.value for cause in self.causes], self.engine_message)


class DeletionBatch:
    """
    Image IDs selected for one reconciliation run.

    Always partitioned into disjoint pending, deleted and kept lists whose
    union is the original candidate list. Kept is terminal.
    """

    def __init__(self, candidate_ids: Iterable[str]):
        self.candidates: List[str] = list(dict.fromkeys(candidate_ids))
        self.pending: List[str] = list(self.candidates)
        self.deleted: List[str] = []
        self.kept: List[str] = []

    def __len__(self) -> int:
        return len(self.candidates)

    @property
    def is_settled(self) -> bool:
        return not self.pending

    def mark_deleted(self, image_id: str) -> None:
        self._move(image_id, self.deleted)

    def mark_kept(self, image_id: str) -> None:
        self._move(image_id, self.kept)

    def _move(self, image_id: str, target: List[str]) -> None:
        if image_id not in self.pending:
            raise ValueError(f"Image {image_id} is not pending in this batch")
        self.pending.remove(image_id)
        target.append(image_id)

    def check_invariant(self) -> bool:
        """True when pending, deleted and kept partition the original candidates."""
        members = self.pending + self.deleted + self.kept
        return len(members) == len(set(members)) and set(members) == set(self.candidates)


@dataclass
class RemediationRound:
    """One attempt cycle over the pending set"""

    number: int
    kind: str  # "delete", "retry" or "force"
    attempted: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass
class ReconciliationReport:
    """Everything the operator needs to know about a finished run"""

    batch: DeletionBatch
    diagnoses: Dict[str, Diagnosis] = field(default_factory=dict)
    rounds: List[RemediationRound] = field(default_factory=list)
    declined: List[RemediationDeclined] = field(default_factory=list)
    containers_removed: List[str] = field(default_factory=list)
    containers_failed: List[str] = field(default_factory=list)
    state_history: List[BatchState] = field(default_factory=list)
    nothing_to_do: bool = False

    @property
    def deleted_count(self) -> int:
        return len(self.batch.deleted)

    @property
    def kept_count(self) -> int:
        return len(self.batch.kept)

    def kept_causes(self) -> Dict[str, List[BlockCause]]:
        """Last known blocking causes of every kept image."""
        return {
            image_id: self.diagnoses[image_id].causes if image_id in self.diagnoses else [BlockCause.OTHER]
            for image_id in self.batch.kept
        }


class ReconciliationDriver:
    """Drives a DeletionBatch to a terminal partition with operator-confirmed escalation."""

    def __init__(self, client, prompt, inventory: Optional[ImageInventory] = None):
        """
        Args:
            client: DockerClient (or anything with delete_image, force_delete_image,
                force_remove_container and last_errors)
            prompt: OperatorPrompt used for every disclosure and decision
            inventory: ImageInventory for dependency lookups (default: built on client)
        """
        self.client = client
        self.prompt = prompt
        self.inventory = inventory or ImageInventory(client)
        self.batch: Optional[DeletionBatch] = None
        self.report: Optional[ReconciliationReport] = None
        self._handlers: Dict[BatchState, Callable[[], BatchState]] = {
            BatchState.INITIAL: self._on_initial,
            BatchState.FIRST_PASS: self._on_first_pass,
            BatchState.DIAGNOSED: self._on_diagnosed,
            BatchState.AWAIT_CONTAINER_REMOVAL_DECISION: self._on_await_container_removal,
            BatchState.RETRIED: self._on_retried,
            BatchState.AWAIT_FORCE_DECISION: self._on_await_force,
        }

    def run(self, candidate_ids: Iterable[str]) -> ReconciliationReport:
        """Reconcile the candidates and return the final report.

        Raises:
            EngineUnavailable: if the engine stops answering mid-run
            RuntimeError: if a state handler breaks the pending/deleted/kept partition
        """
        self.batch = DeletionBatch(candidate_ids)
        self.report = ReconciliationReport(batch=self.batch)

        state = BatchState.INITIAL
        while state is not BatchState.TERMINAL:
            self.report.state_history.append(state)
            logger.debug(f"Reconciliation state: {state.value} (pending={len(self.batch.pending)})")
            state = self._handlers[state]()
            if not self.batch.check_invariant():
                raise RuntimeError(f"Batch partition violated on entering {state.value}")

        self.report.state_history.append(BatchState.TERMINAL)
        self._on_terminal()
        return self.report

    # State handlers
    def _on_initial(self) -> BatchState:
        if not self.batch.pending:
            self.report.nothing_to_do = True
            self.prompt.info("Nothing to do: no images selected for deletion")
            return BatchState.TERMINAL
        return BatchState.FIRST_PASS

    def _on_first_pass(self) -> BatchState:
        self.prompt.info("Attempting to delete images...")
        round_ = self._delete_round("delete", self.client.delete_image)
        if round_.deleted:
            self.prompt.success(f"Successfully deleted {len(round_.deleted)} image(s)")
        if self.batch.is_settled:
            return BatchState.TERMINAL
        self.prompt.warning(f"{len(self.batch.pending)} stubborn image(s) could not be deleted")
        return BatchState.DIAGNOSED

    def _on_diagnosed(self) -> BatchState:
        self._diagnose_pending()
        if self.batch.is_settled:
            return BatchState.TERMINAL
        self._disclose("Stubborn images:")
        if any(self.report.diagnoses[image_id].blocked_by_container for image_id in self.batch.pending):
            return BatchState.AWAIT_CONTAINER_REMOVAL_DECISION
        return BatchState.AWAIT_FORCE_DECISION

    def _on_await_container_removal(self) -> BatchState:
        blocked = [image_id for image_id in self.batch.pending if self.report.diagnoses[image_id].blocked_by_container]
        if not self.prompt.confirm("Remove associated containers?"):
            self.report.declined.append(RemediationDeclined("container removal", blocked))
            logger.info(f"Operator declined container removal for {len(blocked)} image(s)")
            return BatchState.AWAIT_FORCE_DECISION

        for image_id in blocked:
            containers = self.report.diagnoses[image_id].containers
            self.prompt.info(f"Removing {len(containers)} container(s) for {short_id(image_id)}...")
            for container in containers:
                # Containers can block several images; try each one once
                if container.id in self.report.containers_removed or container.id in self.report.containers_failed:
                    continue
                if self.client.force_remove_container(container.id):
                    self.report.containers_removed.append(container.id)
                else:
                    self.report.containers_failed.append(container.id)
                    self.prompt.error(f"Failed to remove container {container.short_id}")

        if self.report.containers_removed:
            self.prompt.success(f"Removed {len(self.report.containers_removed)} container(s)")
        return BatchState.RETRIED

    def _on_retried(self) -> BatchState:
        self.prompt.info("Retrying image deletion...")
        round_ = self._delete_round("retry", self.client.delete_image)
        for image_id in round_.deleted:
            self.prompt.success(f"Deleted: {short_id(image_id)}")
        if self.batch.is_settled:
            self.prompt.success("All images deleted after container removal!")
            return BatchState.TERMINAL
        self._diagnose_pending()
        if not self.batch.is_settled:
            self._disclose("Images still blocked after container removal:")
        return BatchState.AWAIT_FORCE_DECISION

    def _on_await_force(self) -> BatchState:
        if self.batch.is_settled:
            return BatchState.TERMINAL

        if not self.prompt.confirm("Force delete remaining stubborn images?"):
            remaining = list(self.batch.pending)
            self.report.declined.append(RemediationDeclined("force delete", remaining))
            for image_id in remaining:
                self.batch.mark_kept(image_id)
            self.prompt.info("Stubborn images kept")
            return BatchState.TERMINAL

        self.prompt.info("Force deleting...")
        round_ = self._start_round("force")
        for image_id in list(self.batch.pending):
            round_.attempted.append(image_id)
            if self.client.force_delete_image(image_id):
                round_.deleted.append(image_id)
                self.batch.mark_deleted(image_id)
                self.prompt.success(f"Force deleted: {short_id(image_id)}")
            else:
                round_.failed.append(image_id)
                self.batch.mark_kept(image_id)
                self._record_engine_message(image_id)
                self.prompt.error(f"Failed even with force: {short_id(image_id)}")
        return BatchState.TERMINAL

    def _on_terminal(self) -> None:
        if self.report.nothing_to_do:
            return
        self.prompt.say(format_reconciliation_summary(self.report))
        logger.info(
            f"Reconciliation finished: {self.report.deleted_count} deleted, {self.report.kept_count} kept"
        )
        for image_id, causes in self.report.kept_causes().items():
            logger.warning(f"Kept {short_id(image_id)}: {', '.join(cause.value for cause in causes)}")

    # Helpers
    def _start_round(self, kind: str) -> RemediationRound:
        round_ = RemediationRound(number=len(self.report.rounds) + 1, kind=kind)
        self.report.rounds.append(round_)
        return round_

    def _delete_round(self, kind: str, delete: Callable[[str], bool]) -> RemediationRound:
        """Attempt each pending image independently; one failure never stops the others."""
        round_ = self._start_round(kind)
        for image_id in list(self.batch.pending):
            round_.attempted.append(image_id)
            if delete(image_id):
                round_.deleted.append(image_id)
                self.batch.mark_deleted(image_id)
            else:
                round_.failed.append(image_id)
        logger.info(
            f"Round {round_.number} ({kind}): {len(round_.deleted)} deleted, {len(round_.failed)} still pending"
        )
        return round_

    def _diagnose_pending(self) -> None:
        for image_id in list(self.batch.pending):
            image = self.inventory.get_image(image_id)
            if image is None:
                # Gone since the failed attempt; nothing left to delete
                logger.info(f"Image {short_id(image_id)} vanished during diagnosis; treating as deleted")
                self.batch.mark_deleted(image_id)
                continue
            dependents = self.inventory.dependents(image_id)
            self.report.diagnoses[image_id] = Diagnosis(
                image_id=image_id,
                image=image,
                containers=dependents.containers,
                children=dependents.children,
                engine_message=self._engine_message(image_id),
            )

    def _disclose(self, title: str) -> None:
        diagnoses = [self.report.diagnoses[image_id] for image_id in self.batch.pending]
        self.prompt.say("")
        self.prompt.info(title)
        self.prompt.say(format_diagnosis_table(diagnoses))
        for diagnosis in diagnoses:
            logger.info(f"{diagnosis.to_error().message}: {', '.join(c.value for c in diagnosis.causes)}")

    def _engine_message(self, image_id: str) -> str:
        return getattr(self.client, "last_errors", {}).get(image_id, "")

    def _record_engine_message(self, image_id: str) -> None:
        diagnosis = self.report.diagnoses.get(image_id)
        message = self._engine_message(image_id)
        if diagnosis is not None and message:
            diagnosis.engine_message = message
