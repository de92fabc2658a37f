"""
Encoders and tolerant decoders for the ChomikBox SOAP protocol.

The service's XML is not always well-formed, so responses are read with a
small, fixed set of named extraction rules instead of an XML parser. A
decoder that finds nothing returns an empty result, never an error.
"""

import html
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import urljoin
from xml.sax.saxutils import escape

from bs4 import BeautifulSoup

from chomikuj_cli.models.config import DEFAULT_BASE_URL
from chomikuj_cli.models.credentials import Credentials

SERVICE_NAMESPACE = "http://chomikuj.pl/"
SOAP_ACTION_PREFIX = "http://chomikuj.pl/IChomikBoxService/"
CLIENT_NAME = "chomikbox"
CLIENT_VERSION = "2.0.7.9"
PROTOCOL_VERSION = 4

_ENVELOPE_TEMPLATE = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"'
    ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
    "<s:Body>{body}</s:Body>"
    "</s:Envelope>"
)

# Anything outside printable ASCII is dropped from folder paths.
_NON_ASCII_REGEX = re.compile(r"[^\x20-\x7F]+")


@dataclass(frozen=True)
class DownloadRequestEntry:
    """
    One `<DownloadReqEntry>` of a Download call.

    Resolution entries carry only the service path as `id`; planning entries
    carry the file id and the cost acknowledgment.
    """

    id: str
    agreement_name: Optional[str] = None
    cost: Optional[int] = None

    def to_xml(self) -> str:
        xml = f"<DownloadReqEntry><id>{escape(self.id)}</id>"
        if self.agreement_name is not None:
            xml += (
                "<agreementInfo><AgreementInfo>"
                f"<name>{escape(self.agreement_name)}</name>"
            )
            if self.agreement_name != "small" and self.cost is not None:
                xml += f"<cost>{self.cost}</cost>"
            xml += "</AgreementInfo></agreementInfo>"
        return xml + "</DownloadReqEntry>"


@dataclass(frozen=True)
class ExtractionSchema:
    """
    A named extraction rule for one record type.

    `block` isolates each record; every field pattern is then searched inside
    the block and its first group becomes the field value. Records missing
    any of the `required` fields are dropped.
    """

    name: str
    block: re.Pattern
    fields: dict[str, re.Pattern]
    required: frozenset[str] = field(default_factory=frozenset)

    def extract(self, text: str) -> list[dict[str, Optional[str]]]:
        records = []
        for block_match in self.block.finditer(text):
            block = block_match.group(1)
            record: dict[str, Optional[str]] = {}
            for field_name, pattern in self.fields.items():
                match = pattern.search(block)
                record[field_name] = match.group(1) if match else None
            if all(record.get(name) is not None for name in self.required):
                records.append(record)
        return records


_FILE_ENTRY_BLOCK = re.compile(r"<FileEntry>(.*?)</FileEntry>", re.DOTALL)

FILE_ENTRY_SCHEMA = ExtractionSchema(
    name="file_entry",
    block=_FILE_ENTRY_BLOCK,
    fields={
        "id": re.compile(r"<id>(\d+)</id>"),
        "agreement": re.compile(r"<AgreementInfo>\s*<name>(.*?)</name>", re.DOTALL),
        "cost": re.compile(r"<AgreementInfo>.*?<cost>(\d+)</cost>", re.DOTALL),
        "real_id": re.compile(r"<realId>(.*?)</realId>", re.DOTALL),
        "name": re.compile(r"<name>([^<]*)</name>\s*<size>", re.DOTALL),
        "size": re.compile(r"</name>\s*<size>(\d+)</size>", re.DOTALL),
    },
    required=frozenset({"id", "agreement", "name", "size"}),
)

DOWNLOAD_LINK_SCHEMA = ExtractionSchema(
    name="download_link",
    block=_FILE_ENTRY_BLOCK,
    fields={
        "id": re.compile(r"<id>(.*?)</id>", re.DOTALL),
        "real_id": re.compile(r"<realId>(.*?)</realId>", re.DOTALL),
        "name": re.compile(r"<name>([^<]*)</name>\s*<size>", re.DOTALL),
        "size": re.compile(r"</name>\s*<size>(\d+)</size>", re.DOTALL),
        "nil_url": re.compile(r"(<url\s+i:nil=\"true\"\s*/>)"),
        "url": re.compile(r"<url>(.*?)</url>", re.DOTALL),
    },
    required=frozenset({"id", "name"}),
)

_TOKEN_REGEX = re.compile(r"<a:token>(.*?)</a:token>", re.DOTALL)
_STATUS_REGEX = re.compile(r"<a:status>(.*?)</a:status>", re.DOTALL)
_STAMP_REGEX = re.compile(r"<a:messageSequence>\s*<stamp>(\d+)</stamp>")
_GLOBAL_ID_REGEX = re.compile(r"<globalId>(.*?)</globalId>", re.DOTALL)


def _text(payload: bytes | str) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload


def soap_action(action: str) -> str:
    return SOAP_ACTION_PREFIX + action


def encode_auth_request(credentials: Credentials) -> bytes:
    """Builds the `Auth` envelope for a user name and password hash."""
    body = (
        f'<Auth xmlns="{SERVICE_NAMESPACE}">'
        f"<name>{escape(credentials.username)}</name>"
        f"<passHash>{credentials.password_hash}</passHash>"
        f"<ver>{PROTOCOL_VERSION}</ver>"
        "<client>"
        f"<name>{CLIENT_NAME}</name>"
        f"<version>{CLIENT_VERSION}</version>"
        "</client>"
        "</Auth>"
    )
    return _ENVELOPE_TEMPLATE.format(body=body).encode("utf-8")


def encode_download_request(
    token: str,
    stamp: int,
    entries: Iterable[DownloadRequestEntry],
    disposition: str = "download",
) -> bytes:
    """Builds the `Download` envelope used by both protocol phases."""
    body = (
        f'<Download xmlns="{SERVICE_NAMESPACE}">'
        f"<token>{escape(token)}</token>"
        "<sequence>"
        f"<stamp>{stamp}</stamp>"
        "<part>0</part>"
        "<count>1</count>"
        "</sequence>"
        f"<disposition>{escape(disposition)}</disposition>"
        f"<list>{''.join(entry.to_xml() for entry in entries)}</list>"
        "</Download>"
    )
    return _ENVELOPE_TEMPLATE.format(body=body).encode("utf-8")


def decode_auth_response(payload: bytes | str) -> Optional[str]:
    """Returns the session token, or None when the login was refused."""
    match = _TOKEN_REGEX.search(_text(payload))
    if not match or not match.group(1).strip():
        return None
    return match.group(1).strip()


def decode_auth_status(payload: bytes | str) -> Optional[str]:
    match = _STATUS_REGEX.search(_text(payload))
    return match.group(1).strip().upper() if match else None


def decode_server_stamp(payload: bytes | str) -> Optional[int]:
    """Returns the sequence stamp the server reported, if any."""
    match = _STAMP_REGEX.search(_text(payload))
    return int(match.group(1)) if match else None


def decode_file_entries(
    payload: bytes | str, schema: ExtractionSchema = FILE_ENTRY_SCHEMA
) -> list[dict[str, Optional[str]]]:
    """Extracts every `<FileEntry>` record matching the given schema."""
    records = schema.extract(_text(payload))
    for record in records:
        if record.get("name") is not None:
            record["name"] = html.unescape(record["name"])
    return records


def decode_download_links(payload: bytes | str) -> list[dict[str, Optional[str]]]:
    """
    Extracts the planned download entries. `url` is None for entries marked
    `<url i:nil="true"/>` and entity-unescaped otherwise.
    """
    links = []
    for record in decode_file_entries(payload, DOWNLOAD_LINK_SCHEMA):
        url = record.pop("url")
        is_nil = record.pop("nil_url") is not None
        record["url"] = None if is_nil or not url else html.unescape(url.strip())
        links.append(record)
    return links


def decode_global_path(payload: bytes | str) -> str:
    """
    Returns the folder path of a Download response: the first `<globalId>`
    without its leading character, entity-decoded, non-ASCII stripped.
    """
    match = _GLOBAL_ID_REGEX.search(_text(payload))
    if not match:
        return ""
    path = html.unescape(match.group(1)[1:])
    return _NON_ASCII_REGEX.sub("", path)


def decode_folder_links(
    html_payload: bytes | str, base_url: str = DEFAULT_BASE_URL
) -> list[str]:
    """
    Returns absolute URLs of the subfolders listed in a folder page's
    `foldersList` element.
    """
    soup = BeautifulSoup(_text(html_payload), "html.parser")
    folders_list = soup.find(id="foldersList")
    if folders_list is None:
        return []

    links = []
    for anchor in folders_list.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "javascript:")):
            continue
        url = urljoin(base_url, href)
        if url not in links:
            links.append(url)
    return links
