# ditakeys/key_extractor.py
"""
Regex-based scanning of DITA maps for key definitions and submap references.
Only the attributes the key space needs are extracted; maps are never fully parsed.
"""

from typing import List, Optional, Tuple
import logging
import os
import re

from lxml import etree

from .models.types import (
    KeyDefinition,
    KeyMetadata,
    MapScanResult,
    MAX_MAP_REFERENCES,
)
from .utils.logger import DITALogger
from .utils.paths import WorkspaceFolders, is_external_href


def _blank(match: "re.Match[str]") -> str:
    # Same length, newlines kept so line/column offsets stay valid
    return re.sub(r"[^\n]", " ", match.group(0))


class KeyDefinitionExtractor:
    """Extracts key declarations and submap references from one map's text."""

    COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)
    CDATA_PATTERN = re.compile(r"<!\[CDATA\[.*?\]\]>", re.DOTALL)

    KEYDEF_PATTERN = re.compile(
        r"<([\w.-]+)[^>]*\bkeys\s*=\s*[\"']([^\"']+)[\"'][^>]*>",
        re.IGNORECASE,
    )

    MAPREF_PATTERN = re.compile(
        r"<(?:mapref|topicref|chapter|appendix|part)\b[^>]*"
        r"\bhref\s*=\s*[\"']([^\"']+\.(?:ditamap|bookmap))[\"'][^>]*>",
        re.IGNORECASE,
    )

    HREF_PATTERN = re.compile(r"\bhref\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
    SCOPE_PATTERN = re.compile(r"\bscope\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
    ROLE_PATTERN = re.compile(r"\bprocessing-role\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
    NAVTITLE_ATTR_PATTERN = re.compile(r"\bnavtitle\s*=\s*[\"']([^\"']*)[\"']", re.IGNORECASE)

    # topicmeta must be the first child of the declaring element
    TOPICMETA_PATTERN = re.compile(
        r"\s*<topicmeta\b[^>]*>(.*?)</topicmeta\s*>",
        re.IGNORECASE | re.DOTALL,
    )
    KEYWORD_PATTERN = re.compile(r"<keyword\b[^>]*>([^<]+)</keyword\s*>", re.IGNORECASE)

    def __init__(
        self,
        workspace_folders: Optional[WorkspaceFolders] = None,
        logger: Optional[DITALogger] = None
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.workspace_folders = workspace_folders or WorkspaceFolders()
        self.parser = etree.XMLParser(
            recover=True,
            remove_blank_text=True,
            resolve_entities=False,
            dtd_validation=False,
            load_dtd=False,
            no_network=True
        )

    @classmethod
    def strip_comments_and_cdata(cls, text: str) -> str:
        """Blank out comment and CDATA regions without shifting offsets."""
        text = cls.COMMENT_PATTERN.sub(_blank, text)
        return cls.CDATA_PATTERN.sub(_blank, text)

    @staticmethod
    def submap_limit(max_link_matches: int) -> int:
        return max(MAX_MAP_REFERENCES, max_link_matches // 10)

    def extract(self, content: str, map_path: str, max_matches: int) -> MapScanResult:
        """
        Scan one map for the keys it declares and the submaps it references.

        Args:
            content: Map text, already stripped of comments and CDATA
            map_path: Absolute path of the map
            max_matches: Cap on key-declaring elements; the submap cap is derived from it

        Returns:
            MapScanResult with keys in document order and submap paths in reference order
        """
        return MapScanResult(
            keys=self.extract_key_definitions(content, map_path, max_matches),
            submaps=self.extract_map_references(content, map_path, max_matches),
        )

    def extract_key_definitions(
        self,
        content: str,
        map_path: str,
        max_matches: int
    ) -> List[KeyDefinition]:
        """Collect one KeyDefinition per name in every keys="..." attribute."""
        keys: List[KeyDefinition] = []
        map_dir = os.path.dirname(map_path)

        for match_count, match in enumerate(self.KEYDEF_PATTERN.finditer(content), start=1):
            if match_count > max_matches:
                self.logger.debug(f"Key match limit {max_matches} reached in {map_path}")
                break

            element = match.group(0)
            key_names = match.group(2).split()
            if not key_names:
                continue

            target_file, element_id = self._resolve_href(element, map_dir)
            scope = self._attribute(self.SCOPE_PATTERN, element)
            processing_role = self._attribute(self.ROLE_PATTERN, element)

            topicmeta = None
            if not element.endswith("/>"):
                if meta_match := self.TOPICMETA_PATTERN.match(content, match.end()):
                    topicmeta = meta_match.group(1)

            inline_content = None
            if target_file is None and topicmeta is not None:
                inline_content = self._extract_inline_content(topicmeta)

            metadata = self._extract_metadata(element, topicmeta)

            for key_name in key_names:
                keys.append(KeyDefinition(
                    key_name=key_name,
                    source_map=map_path,
                    target_file=target_file,
                    element_id=element_id,
                    inline_content=inline_content,
                    scope=scope,
                    processing_role=processing_role,
                    metadata=metadata,
                ))

        return keys

    def extract_map_references(
        self,
        content: str,
        map_path: str,
        max_link_matches: int
    ) -> List[str]:
        """Collect absolute paths of in-workspace submaps."""
        submaps: List[str] = []
        map_dir = os.path.dirname(map_path)
        max_matches = self.submap_limit(max_link_matches)

        for match_count, match in enumerate(self.MAPREF_PATTERN.finditer(content), start=1):
            if match_count > max_matches:
                self.logger.debug(f"Map reference limit {max_matches} reached in {map_path}")
                break

            href = match.group(1)
            if is_external_href(href):
                continue

            if resolved := self.workspace_folders.resolve(map_dir, href):
                submaps.append(resolved)

        return submaps

    def _resolve_href(self, element: str, map_dir: str) -> Tuple[Optional[str], Optional[str]]:
        """Split href into an in-workspace target file and a fragment id."""
        href = self._attribute(self.HREF_PATTERN, element)
        if not href:
            return None, None

        if "#" in href:
            file_part, fragment = href.split("#", 1)
            target_file = None
            if file_part and not is_external_href(file_part):
                target_file = self.workspace_folders.resolve(map_dir, file_part)
            return target_file, fragment or None

        if is_external_href(href):
            return None, None

        return self.workspace_folders.resolve(map_dir, href), None

    def _extract_inline_content(self, topicmeta: str) -> Optional[str]:
        if keyword := self.KEYWORD_PATTERN.search(topicmeta):
            text = keyword.group(1).strip()
            return text or None
        return None

    def _extract_metadata(self, element: str, topicmeta: Optional[str]) -> Optional[KeyMetadata]:
        """Read navtitle, keywords and shortdesc for display purposes."""
        metadata = KeyMetadata()

        if topicmeta is not None:
            try:
                root = etree.fromstring(
                    f"<topicmeta>{topicmeta}</topicmeta>".encode("utf-8"),
                    self.parser
                )
            except (etree.XMLSyntaxError, ValueError) as e:
                self.logger.debug(f"Unparseable topicmeta skipped: {str(e)}")
                root = None

            if root is not None:
                if (navtitle := root.find("navtitle")) is not None:
                    metadata.navtitle = self._element_text(navtitle)
                metadata.keywords = [
                    text for keyword in root.iterfind("keywords/keyword")
                    if (text := self._element_text(keyword))
                ]
                if (shortdesc := root.find("shortdesc")) is not None:
                    metadata.shortdesc = self._element_text(shortdesc)

        if metadata.navtitle is None:
            metadata.navtitle = self._attribute(self.NAVTITLE_ATTR_PATTERN, element)

        return None if metadata.is_empty() else metadata

    @staticmethod
    def _element_text(element: "etree._Element") -> Optional[str]:
        text = " ".join("".join(element.itertext()).split())
        return text or None

    @staticmethod
    def _attribute(pattern: "re.Pattern[str]", element: str) -> Optional[str]:
        match = pattern.search(element)
        if not match:
            return None
        return match.group(1).strip() or None
