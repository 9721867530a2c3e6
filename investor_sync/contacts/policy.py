from typing import Iterable, Optional

from investor_sync.core.config import AppConfig
from investor_sync.core.models import normalize_email

SYSTEM_SENDER_FRAGMENTS = [
    "@noreply.com",
    "@notifications.",
    "@calendly.com",
    "@zoom.us",
    "@teams.microsoft.com",
    "@meet.google.com",
]


def name_from_email(email: Optional[str]) -> str:
    """Best-effort display name from an address: ``jane.doe@x.com`` -> ``Jane Doe``."""
    if not email or "@" not in email:
        return "Unknown Name"
    local_part = email.split("@", 1)[0]
    for sep in "._-+":
        local_part = local_part.replace(sep, " ")
    words = [w for w in local_part.split(" ") if w]
    return " ".join(w[:1].upper() + w[1:] for w in words) or "Unknown Name"


class ExclusionPolicy:
    """Predicate over an email address: True means never track it as a contact."""

    def __init__(
        self,
        internal_domains: Iterable[str] = (),
        excluded_emails: Iterable[str] = (),
        excluded_fragments: Iterable[str] = SYSTEM_SENDER_FRAGMENTS,
    ):
        self.internal_domains = [d.lower().lstrip("@") for d in internal_domains if d]
        self.excluded_emails = {normalize_email(e) for e in excluded_emails if e}
        self.excluded_fragments = [f.lower() for f in excluded_fragments if f]

    def is_excluded(self, email: Optional[str]) -> bool:
        address = normalize_email(email)
        if not address or "@" not in address:
            return True
        if address in self.excluded_emails:
            return True

        domain = address.rsplit("@", 1)[1]
        if any(domain == d or domain.endswith("." + d) for d in self.internal_domains):
            return True

        return any(fragment in address for fragment in self.excluded_fragments)

    __call__ = is_excluded


def build_exclusion_policy(config: AppConfig) -> ExclusionPolicy:
    """Internal domains, the transcript relay sender and the sync principal, plus configured extras."""
    excluded_emails = [config.transcript_relay_sender, *config.excluded_emails]
    if config.google_service_email:
        excluded_emails.append(config.google_service_email)
    if config.google_delegated_user:
        excluded_emails.append(config.google_delegated_user)

    fragments = [*SYSTEM_SENDER_FRAGMENTS]
    internal_domains = [*config.org_domains]
    for entry in config.excluded_domains:
        # "foo.com" / "@foo.com" exclude a domain; partial entries like "@notifications." match as substrings
        if entry.endswith(".") or "." not in entry:
            fragments.append(entry)
        else:
            internal_domains.append(entry.lstrip("@"))

    return ExclusionPolicy(
        internal_domains=internal_domains,
        excluded_emails=excluded_emails,
        excluded_fragments=fragments,
    )
