"""Todo data models.

``TodoNode`` is the embedded (document-side) representation of a todo and
``TodoRecord`` is the persisted (store-side) row. They share ``id`` as the
join key; neither holds a reference to the other.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

# Fields compared when deciding whether a todo changed between snapshots.
SYNCED_FIELDS: tuple[str, ...] = (
    "content",
    "completed",
    "assigned_to",
    "due_date",
    "project_id",
    "attachment_ids",
)

# Fields a newer store record may overwrite in the document. Content text is
# never overwritten from the store.
MERGEABLE_FIELDS: tuple[str, ...] = (
    "completed",
    "assigned_to",
    "due_date",
    "project_id",
    "attachment_ids",
)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Interpret naive datetimes as UTC and normalise aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class TodoNode(BaseModel):
    """Snapshot of a todo node embedded in a document.

    Attributes:
        id: Stable identifier, assigned at creation and never reused
        content: Human-readable task text (the node's inline text)
        completed: Completion status
        assigned_to: Assignee user ID
        due_date: Optional due date
        attachment_ids: Attachment IDs in display order
        version: Incremented on every attribute mutation made through the editor
        project_id: Optional reference to a project
        created_at: Creation timestamp
        updated_at: Timestamp of the last local mutation (pairs with ``version``)
        schema_version: Node family tag the node was written with
        read_only: True when the schema version cannot be safely interpreted
    """

    id: str
    content: str = ""
    completed: bool = False
    assigned_to: str | None = None
    due_date: datetime | None = None
    attachment_ids: list[str] = Field(default_factory=list)
    version: int = Field(default=1, ge=1)
    project_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    schema_version: str = "2.3"
    read_only: bool = False

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    def synced_fields(self) -> dict:
        """Return the fields that are mirrored into the store."""
        return {name: getattr(self, name) for name in SYNCED_FIELDS}


class TodoRecord(BaseModel):
    """Todo row in the backing store.

    Attributes:
        id: Same as the embedded node's ``id``
        document_id: Document that owns this todo
        content: Task text
        completed: Completion status
        assigned_to: Assignee user ID
        due_date: Optional due date
        attachment_ids: Attachment IDs in display order
        project_id: Optional reference to a project
        version: Node version last written to the store
        created_by: User who created the record
        created_at: Creation timestamp
        updated_at: Last update timestamp (set by the store)
    """

    id: str
    document_id: str
    content: str = ""
    completed: bool = False
    assigned_to: str | None = None
    due_date: datetime | None = None
    attachment_ids: list[str] = Field(default_factory=list)
    project_id: str | None = None
    version: int = Field(default=1, ge=1)
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @field_validator("attachment_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return [] if v is None else v

    def synced_fields(self) -> dict:
        """Return the fields mirrored from the embedded node."""
        return {name: getattr(self, name) for name in SYNCED_FIELDS}

    @classmethod
    def from_node(
        cls,
        node: TodoNode,
        document_id: str,
        created_by: str | None,
        now: datetime | None = None,
    ) -> "TodoRecord":
        """Build the record inserted for a newly created node."""
        now = now or datetime.now(UTC)
        return cls(
            id=node.id,
            document_id=document_id,
            content=node.content,
            completed=node.completed,
            assigned_to=node.assigned_to,
            due_date=node.due_date,
            attachment_ids=list(node.attachment_ids),
            project_id=node.project_id,
            version=node.version,
            created_by=created_by,
            created_at=node.created_at or now,
            updated_at=node.updated_at or now,
        )


class TodoRecordUpdate(BaseModel):
    """Partial update for a todo record.

    Only fields that were explicitly set are sent to the store, so ``None``
    can still be used to clear an assignee or due date.
    """

    content: str | None = None
    completed: bool | None = None
    assigned_to: str | None = None
    due_date: datetime | None = None
    attachment_ids: list[str] | None = None
    project_id: str | None = None
    version: int | None = Field(default=None, ge=1)

    def changes(self) -> dict:
        """Return only the explicitly set fields."""
        return self.model_dump(exclude_unset=True)
