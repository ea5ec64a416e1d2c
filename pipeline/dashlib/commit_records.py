"""Raw commit records from the two supported providers.

A RawCommitRecord carries an explicit source tag plus the untouched
provider payload. Identity and timestamp extraction branch on the tag,
so a new provider arm must be added to both lookups.
"""

# Standard Library
import dataclasses
from datetime import datetime
from datetime import timezone

from dashlib.errors import MalformedRecordError

SOURCE_GITHUB = "github"
SOURCE_AZURE = "azure"
KNOWN_SOURCES = (SOURCE_GITHUB, SOURCE_AZURE)


#============================================
@dataclasses.dataclass(frozen=True)
class RawCommitRecord:
	"""
	One provider commit payload tagged with its source schema.
	"""
	source: str
	payload: dict

	def __post_init__(self):
		if self.source not in KNOWN_SOURCES:
			raise ValueError(f"Unknown commit record source: {self.source!r}")


#============================================
def github_record(payload: dict) -> RawCommitRecord:
	"""
	Wrap one GitHub commit search item.
	"""
	return RawCommitRecord(SOURCE_GITHUB, dict(payload))


#============================================
def azure_record(payload: dict) -> RawCommitRecord:
	"""
	Wrap one Azure DevOps commit item.
	"""
	return RawCommitRecord(SOURCE_AZURE, dict(payload))


#============================================
def identity_key(record: RawCommitRecord) -> str:
	"""
	Return the stable identity key for one record.

	The full provider hash is used as-is, prefixed with the source tag so
	the two schemas never share a key space.

	Raises:
		MalformedRecordError: when the record has no identity field.
	"""
	if record.source == SOURCE_GITHUB:
		value = record.payload.get("sha")
	elif record.source == SOURCE_AZURE:
		value = record.payload.get("commitId")
	else:
		raise MalformedRecordError(f"Unsupported record source: {record.source!r}")
	text = str(value or "").strip()
	if not text:
		raise MalformedRecordError(
			f"Commit record from {record.source} has no identity field."
		)
	return f"{record.source}:{text}"


#============================================
def parse_timestamp(text: str) -> datetime:
	"""
	Parse an ISO timestamp into a timezone-aware UTC datetime.
	"""
	parsed = datetime.fromisoformat(str(text).strip().replace("Z", "+00:00"))
	if parsed.tzinfo is None:
		return parsed.replace(tzinfo=timezone.utc)
	return parsed.astimezone(timezone.utc)


#============================================
def record_timestamp_text(record: RawCommitRecord) -> str:
	"""
	Return the raw timestamp string used for range filtering.
	"""
	payload = record.payload
	if record.source == SOURCE_GITHUB:
		commit_data = payload.get("commit") or {}
		committer = commit_data.get("committer") or {}
		author = commit_data.get("author") or {}
		return str(committer.get("date") or author.get("date") or "")
	author = payload.get("author") or {}
	return str(author.get("date") or "")


#============================================
def record_timestamp(record: RawCommitRecord) -> datetime | None:
	"""
	Return the commit timestamp, or None when missing or unparseable.
	"""
	text = record_timestamp_text(record)
	if not text:
		return None
	try:
		return parse_timestamp(text)
	except ValueError:
		return None
