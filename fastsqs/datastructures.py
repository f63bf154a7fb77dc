from dataclasses import dataclass, field


@dataclass(frozen=True)
class MessageAttribute:
    data_type: str
    string_value: str | None = None
    binary_value: bytes | None = None


@dataclass(frozen=True)
class Message:
    id: str
    body: str
    receipt_handle: str
    md5_of_body: str = ""
    attributes: dict[str, MessageAttribute] = field(default_factory=dict)
    system_attributes: dict[str, str] = field(default_factory=dict)

    @property
    def receive_count(self) -> int:
        return int(self.system_attributes.get("ApproximateReceiveCount", 0))


@dataclass(frozen=True)
class ConsumerConfig:
    queue_url: str
    batch_size: int
    poll_delay_seconds: float
    visibility_timeout: int | None
    wait_time_seconds: int | None
    message_attribute_names: tuple[str, ...]
    message_system_attribute_names: tuple[str, ...]
    delete_messages: bool
    max_concurrent_deletes: int
    delete_timeout_seconds: float
