"""
XLIFF 1.2 exchange files.

Extracted strings are sent to the translation service as one XLF document per
extension. Each ``<file original="...">`` entry corresponds to one compiled
module (``<outDir>/<module>``) or to the manifest strings (``package``).
Translated documents come back in the same shape with ``<target>`` elements.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from ..nls.metadata import MetadataBundle
from ..units import OutputRoot, ResourceFile
from ..utils.core.exceptions import SyncError

logger = logging.getLogger(__name__)

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"
SOURCE_LANGUAGE = "en"
PACKAGE_ORIGINAL = "package"

ET.register_namespace("", XLIFF_NS)


@dataclass(frozen=True)
class TransUnit:
    """One translatable string."""

    id: str
    source: str
    target: str | None = None
    note: str | None = None


@dataclass
class XlfFile:
    """The strings of one original file."""

    original: str
    units: list[TransUnit] = field(default_factory=list)

    def add(self, key: str, source: str, note: str | None = None) -> None:
        self.units.append(TransUnit(id=key, source=source, note=note or None))


@dataclass
class ExchangeUnit:
    """An XLF document for one project/resource pair."""

    project: str
    resource: str
    source_language: str = SOURCE_LANGUAGE
    target_language: str | None = None
    files: list[XlfFile] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return f"{self.resource}.xlf"

    @property
    def relative_path(self) -> PurePosixPath:
        """Location used by push-test and pull: ``<project>/<resource>.xlf``."""
        return PurePosixPath(self.project) / self.filename

    def to_xml(self) -> str:
        root = ET.Element(_q("xliff"), {"version": "1.2"})
        for xlf_file in self.files:
            attributes = {
                "original": xlf_file.original,
                "source-language": self.source_language,
                "datatype": "plaintext",
            }
            if self.target_language:
                attributes["target-language"] = self.target_language
            file_element = ET.SubElement(root, _q("file"), attributes)
            body = ET.SubElement(file_element, _q("body"))
            for unit in xlf_file.units:
                unit_element = ET.SubElement(body, _q("trans-unit"), {"id": unit.id})
                source = ET.SubElement(
                    unit_element, _q("source"), {XML_LANG: self.source_language}
                )
                source.text = unit.source
                if unit.target is not None:
                    target_attributes = (
                        {XML_LANG: self.target_language} if self.target_language else {}
                    )
                    target = ET.SubElement(unit_element, _q("target"), target_attributes)
                    target.text = unit.target
                if unit.note:
                    note = ET.SubElement(unit_element, _q("note"))
                    note.text = unit.note

        ET.indent(root, space="  ")
        body_text = ET.tostring(root, encoding="unicode")
        return f'<?xml version="1.0" encoding="utf-8"?>\n{body_text}\n'

    @classmethod
    def parse(cls, text: str, project: str = "", resource: str = "") -> ExchangeUnit:
        """
        Parse an XLF 1.2 document.

        Args:
            text: Document content
            project: Project the document belongs to, if known
            resource: Resource name, if known

        Returns:
            The parsed exchange unit

        Raises:
            SyncError: If the document is not well-formed XLIFF
        """
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise SyncError(f"Malformed XLF document {resource or '<unnamed>'}: {e}") from e
        if _local(root.tag) != "xliff":
            raise SyncError(f"Root element of {resource or '<unnamed>'} is not <xliff>")

        unit = cls(project=project, resource=resource)
        for file_element in _children(root, "file"):
            original = file_element.get("original")
            if not original:
                raise SyncError(f"<file> without 'original' in {resource or '<unnamed>'}")
            unit.source_language = file_element.get("source-language", unit.source_language)
            unit.target_language = file_element.get("target-language", unit.target_language)

            xlf_file = XlfFile(original=original)
            for body in _children(file_element, "body"):
                for unit_element in _children(body, "trans-unit"):
                    xlf_file.units.append(_parse_trans_unit(unit_element, original))
            unit.files.append(xlf_file)
        return unit


def _q(tag: str) -> str:
    return f"{{{XLIFF_NS}}}{tag}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def _parse_trans_unit(element: ET.Element, original: str) -> TransUnit:
    key = element.get("id")
    if key is None:
        raise SyncError(f"<trans-unit> without 'id' in {original}")
    sources = _children(element, "source")
    if not sources:
        raise SyncError(f"<trans-unit id='{key}'> without <source> in {original}")
    targets = _children(element, "target")
    notes = _children(element, "note")
    return TransUnit(
        id=key,
        source=_text(sources[0]),
        target=_text(targets[0]) if targets else None,
        note=_text(notes[0]) if notes else None,
    )


def exchange_unit_from_metadata(
    project: str,
    resource: str,
    header: Mapping[str, object],
    metadata: MetadataBundle,
    package_nls: Mapping[str, str] | None = None,
) -> ExchangeUnit:
    """
    Build the XLF document for a build's extracted strings.

    Args:
        project: Translation service project
        resource: Resource name, normally the extension name
        header: Content of ``nls.metadata.header.json``
        metadata: Content of ``nls.metadata.json``
        package_nls: Content of ``package.nls.json``, if the extension has one

    Returns:
        ExchangeUnit with one file entry per module, manifest strings first
    """
    out_dir = header.get("outDir")
    if not isinstance(out_dir, str) or not out_dir:
        raise SyncError("nls.metadata.header.json has no 'outDir'")

    unit = ExchangeUnit(project=project, resource=resource)
    if package_nls:
        package_file = XlfFile(original=PACKAGE_ORIGINAL)
        for key, message in package_nls.items():
            package_file.add(key, message)
        unit.files.append(package_file)

    for module_id, file_metadata in metadata:
        xlf_file = XlfFile(original=f"{out_dir}/{module_id}")
        comments = file_metadata.comments or tuple(() for _ in file_metadata.keys)
        for key, message, comment in zip(
            file_metadata.keys, file_metadata.messages, comments
        ):
            xlf_file.add(key, message, "\n".join(comment))
        unit.files.append(xlf_file)

    logger.debug(
        f"Created {unit.filename} with {len(unit.files)} file(s) for project {project}"
    )
    return unit


def resource_bundles_from_exchange_unit(
    unit: ExchangeUnit, folder_name: str
) -> list[ResourceFile]:
    """
    Turn a translated XLF document into ``.i18n.json`` resources.

    Every file entry becomes ``<folder_name>/<original>.i18n.json`` under the
    i18n root. Untranslated units keep their source text.
    """
    resources: list[ResourceFile] = []
    for xlf_file in unit.files:
        original = PurePosixPath(xlf_file.original)
        if original.is_absolute() or ".." in original.parts:
            raise SyncError(f"Refusing to import {xlf_file.original} outside the i18n root")
        messages = {
            trans_unit.id: trans_unit.target
            if trans_unit.target is not None
            else trans_unit.source
            for trans_unit in xlf_file.units
        }
        resources.append(
            ResourceFile.from_json(
                PurePosixPath(folder_name) / f"{xlf_file.original}.i18n.json",
                messages,
                root=OutputRoot.I18N,
            )
        )
    return resources
