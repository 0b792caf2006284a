"""Drupal 7 record provider backed by SQLAlchemy text queries."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine, TextClause, bindparam, create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from drupal2wp import log
from drupal2wp.exceptions import SourceUnavailableError
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import (
    ArticleRecord,
    AttachedFile,
    HubRecord,
    LibraryRecord,
    OpinionRecord,
    PageRecord,
    SourcePost,
    SourceTerm,
    SourceUser,
)
from drupal2wp.providers.grouping import group_rows

__all__ = ["DrupalSourceProvider"]

USERS_QUERY = """
SELECT u.uid, u.name, u.mail, u.status, u.created, r.name AS role
FROM users u
LEFT JOIN users_roles ur ON ur.uid = u.uid
LEFT JOIN role r ON r.rid = ur.rid
WHERE u.uid > 0
ORDER BY u.uid
"""

TERMS_QUERY = """
SELECT t.tid, t.name, t.description, t.weight, v.machine_name AS vocabulary,
       COALESCE(h.parent, 0) AS parent_tid
FROM taxonomy_term_data t
JOIN taxonomy_vocabulary v ON v.vid = t.vid
LEFT JOIN taxonomy_term_hierarchy h ON h.tid = t.tid
WHERE v.machine_name = :vocabulary
ORDER BY t.weight, t.name, t.tid
"""

TERM_NAMES_QUERY = """
SELECT t.tid, t.name FROM taxonomy_term_data t WHERE t.tid IN :tids
"""

ATTACHED_FILES_QUERY = """
SELECT fm.fid, fm.filename, fm.uri, fm.filemime, fm.filesize,
       CASE WHEN EXISTS (
           SELECT 1 FROM field_data_field_featured_image fi
           WHERE fi.entity_id = fu.id AND fi.field_featured_image_fid = fm.fid
       ) THEN 1 ELSE 0 END AS is_featured
FROM file_usage fu
JOIN file_managed fm ON fm.fid = fu.fid
WHERE fu.type = 'node' AND fu.id = :nid AND fm.status = 1
ORDER BY is_featured DESC, fm.fid
"""

LIBRARY_QUERY = """
SELECT n.nid, n.title, n.uid, n.created, n.changed, n.status,
       b.body_value, b.body_summary,
       fdfb.field_bajada_value AS bajada,
       fdfc.field_categoria_tid AS categoria_tid,
       fdffc.field_featured_categories_tid AS featured_tid,
       fdft.field_tags_tid AS tag_tid,
       fdfa.field_adjuntos_fid AS file_fid, fm.filename AS file_name,
       fm.uri AS file_uri, fm.filemime AS file_mime,
       fdffi.field_featured_image_fid AS image_fid, fm2.filename AS image_name,
       fm2.uri AS image_uri, fm2.filemime AS image_mime
FROM node n
LEFT JOIN field_data_body b ON b.entity_id = n.nid AND b.bundle = 'biblioteca'
LEFT JOIN field_data_field_adjuntos fdfa ON fdfa.entity_id = n.nid
LEFT JOIN file_managed fm ON fm.fid = fdfa.field_adjuntos_fid
LEFT JOIN field_data_field_bajada fdfb ON fdfb.entity_id = n.nid
LEFT JOIN field_data_field_categoria fdfc
       ON fdfc.entity_id = n.nid AND fdfc.bundle = 'biblioteca'
LEFT JOIN field_data_field_featured_categories fdffc ON fdffc.entity_id = n.nid
LEFT JOIN field_data_field_featured_image fdffi ON fdffi.entity_id = n.nid
LEFT JOIN file_managed fm2 ON fm2.fid = fdffi.field_featured_image_fid
LEFT JOIN field_data_field_tags fdft ON fdft.entity_id = n.nid
WHERE n.type = 'biblioteca'
ORDER BY n.created DESC, n.nid DESC
"""

PAGE_QUERY = """
SELECT n.nid, n.title, n.uid, n.created, n.changed, n.status,
       fdb.body_value, fdb.body_summary,
       fdfb.field_bajada_value AS bajada,
       fdfv.field_volanta_value AS volanta,
       fdffc.field_featured_categories_tid AS featured_tid,
       fdfnrs.field_noticia_region_site_tid AS region_tid,
       fdft.field_tags_tid AS tag_tid,
       fdffi.field_featured_image_fid AS image_fid, fm.filename AS image_name,
       fm.uri AS image_uri, fm.filemime AS image_mime
FROM node n
LEFT JOIN field_data_body fdb ON fdb.entity_id = n.nid
LEFT JOIN field_data_field_bajada fdfb ON fdfb.entity_id = n.nid
LEFT JOIN field_data_field_featured_categories fdffc ON fdffc.entity_id = n.nid
LEFT JOIN field_data_field_noticia_region_site fdfnrs ON fdfnrs.entity_id = n.nid
LEFT JOIN field_data_field_tags fdft ON fdft.entity_id = n.nid
LEFT JOIN field_data_field_volanta fdfv ON fdfv.entity_id = n.nid
LEFT JOIN field_data_field_featured_image fdffi ON fdffi.entity_id = n.nid
LEFT JOIN file_managed fm ON fm.fid = fdffi.field_featured_image_fid
WHERE n.type = 'panopoly_page'
ORDER BY n.created DESC, n.nid DESC
"""

ARTICLE_QUERY = """
SELECT n.nid, n.title, n.uid, n.created, n.changed, n.status,
       b.body_value, b.body_summary,
       bj.field_bajada_value AS bajada,
       fc.field_categories_tid AS category_tid,
       ft.field_tags_tid AS tag_tid,
       img.field_imagen_fid AS image_fid, f.filename AS image_name,
       f.uri AS image_uri, f.filemime AS image_mime
FROM node n
LEFT JOIN field_data_body b ON b.entity_id = n.nid
LEFT JOIN field_data_field_bajada bj ON bj.entity_id = n.nid
LEFT JOIN field_data_field_categories fc ON fc.entity_id = n.nid
LEFT JOIN field_data_field_tags ft ON ft.entity_id = n.nid
LEFT JOIN field_data_field_imagen img ON img.entity_id = n.nid
LEFT JOIN file_managed f ON f.fid = img.field_imagen_fid
WHERE n.type IN ('article', 'blog', 'story')
ORDER BY n.created DESC, n.nid DESC
"""

OPINION_QUERY = """
SELECT n.nid, n.title, n.uid, n.created, n.changed, n.status,
       fdb.body_value, fdb.body_summary,
       fdfb.field_bajada_value AS bajada,
       fdfv.field_volanta_value AS volanta,
       fdffc.field_featured_categories_tid AS featured_tid,
       fdfnrs.field_noticia_region_site_tid AS region_tid,
       fdft.field_tags_tid AS tag_tid,
       fdfof.field_opinion_frase_value AS quote,
       fdfr.field_responsabilidad_value AS author_title,
       fdfan.field_autor_nombre_value AS author_name,
       fdfup.field_user_picture_fid AS photo_fid, fm.filename AS photo_name,
       fm.uri AS photo_uri, fm.filemime AS photo_mime
FROM node n
LEFT JOIN field_data_body fdb ON fdb.entity_id = n.nid
LEFT JOIN field_data_field_bajada fdfb ON fdfb.entity_id = n.nid
LEFT JOIN field_data_field_featured_categories fdffc ON fdffc.entity_id = n.nid
LEFT JOIN field_data_field_noticia_region_site fdfnrs ON fdfnrs.entity_id = n.nid
LEFT JOIN field_data_field_tags fdft ON fdft.entity_id = n.nid
LEFT JOIN field_data_field_volanta fdfv ON fdfv.entity_id = n.nid
LEFT JOIN field_data_field_opinion_frase fdfof ON fdfof.entity_id = n.nid
LEFT JOIN field_data_field_responsabilidad fdfr ON fdfr.entity_id = n.nid
LEFT JOIN field_data_field_autor_nombre fdfan ON fdfan.entity_id = n.nid
LEFT JOIN field_data_field_user_picture fdfup ON fdfup.entity_id = n.nid
LEFT JOIN file_managed fm ON fm.fid = fdfup.field_user_picture_fid
WHERE n.type = 'opinion'
ORDER BY n.created DESC, n.nid DESC
"""

HUB_QUERY = """
SELECT n.nid, n.title, n.uid, n.created, n.changed, n.status,
       fdb.body_value, fdb.body_summary,
       fdfb.field_bajada_value AS bajada,
       f.field_volanta_value AS volanta,
       fdfh.field_hub_tid AS hub_tid, ttd.name AS hub_name,
       fdft.field_tags_tid AS tag_tid,
       fdfbii.field_basic_image_image_fid AS image_fid, fm.filename AS image_name,
       fm.uri AS image_uri, fm.filemime AS image_mime
FROM node n
LEFT JOIN field_data_body fdb ON fdb.entity_id = n.nid
LEFT JOIN field_data_field_bajada fdfb ON fdfb.entity_id = n.nid
LEFT JOIN field_data_field_basic_image_image fdfbii ON fdfbii.entity_id = n.nid
LEFT JOIN file_managed fm ON fm.fid = fdfbii.field_basic_image_image_fid
LEFT JOIN field_data_field_hub fdfh ON fdfh.entity_id = n.nid
LEFT JOIN taxonomy_term_data ttd ON ttd.tid = fdfh.field_hub_tid
LEFT JOIN field_data_field_tags fdft ON fdft.entity_id = n.nid
LEFT JOIN field_data_field_volanta f ON f.entity_id = n.nid
WHERE n.type = 'hubs' AND fdb.body_value IS NOT NULL AND n.status = 1
ORDER BY n.nid DESC
"""

_IMAGE_COLUMNS = ("image_fid", "image_name", "image_uri", "image_mime")


def _from_unix(value: int | None) -> datetime | None:
    """Convert a Drupal unix timestamp."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), UTC)


def _file(
    values: Sequence[Any] | None, *, featured: bool = False
) -> AttachedFile | None:
    """Build a file from a ``(fid, filename, uri, mime)`` tuple."""
    if not values or values[0] is None:
        return None
    fid, filename, uri, mime = values
    return AttachedFile(
        file_id=int(fid),
        filename=filename or "",
        uri=uri or "",
        mime_type=mime,
        is_featured=featured,
    )


def _post_fields(group: Mapping[str, Any]) -> dict[str, Any]:
    """Fields shared by every node family."""
    images = group.get("images") or []
    return {
        "source_id": int(group["nid"]),
        "title": group.get("title"),
        "author_id": group.get("uid"),
        "created": _from_unix(group.get("created")),
        "changed": _from_unix(group.get("changed")),
        "published": bool(group.get("status")),
        "body": group.get("body_value"),
        "summary": group.get("body_summary"),
        "subtitle": group.get("bajada"),
        "kicker": group.get("volanta"),
        "tag_ids": [int(t) for t in group.get("tag_ids", [])],
        "featured_file": _file(images[0], featured=True) if images else None,
    }


def _build_library(group: Mapping[str, Any]) -> LibraryRecord:
    return LibraryRecord(
        **_post_fields(group),
        category_ids=[int(t) for t in group["category_ids"]],
        featured_category_ids=[int(t) for t in group["featured_ids"]],
        attachments=[f for f in map(_file, group["files"]) if f is not None],
    )


def _build_page(group: Mapping[str, Any]) -> PageRecord:
    return PageRecord(
        **_post_fields(group),
        category_ids=[int(t) for t in group["featured_ids"]],
        region_id=group.get("region_tid"),
    )


def _build_article(group: Mapping[str, Any]) -> ArticleRecord:
    return ArticleRecord(
        **_post_fields(group),
        category_ids=[int(t) for t in group["category_ids"]],
    )


def _build_opinion(group: Mapping[str, Any]) -> OpinionRecord:
    photos = group["photos"]
    return OpinionRecord(
        **_post_fields(group),
        category_ids=[int(t) for t in group["featured_ids"]],
        region_id=group.get("region_tid"),
        quote=group.get("quote"),
        author_name=group.get("author_name"),
        author_title=group.get("author_title"),
        author_photo=_file(photos[0]) if photos else None,
    )


def _build_hub(group: Mapping[str, Any]) -> HubRecord:
    return HubRecord(
        **_post_fields(group),
        hub_category_id=group.get("hub_tid"),
        hub_category_name=group.get("hub_name"),
    )


_FAMILY_QUERIES: dict[
    Family, tuple[str, Mapping[str, Any], Callable[[Mapping[str, Any]], SourcePost]]
] = {
    Family.LIBRARY: (
        LIBRARY_QUERY,
        {
            "category_ids": "categoria_tid",
            "featured_ids": "featured_tid",
            "tag_ids": "tag_tid",
            "files": ("file_fid", "file_name", "file_uri", "file_mime"),
            "images": _IMAGE_COLUMNS,
        },
        _build_library,
    ),
    Family.PAGE: (
        PAGE_QUERY,
        {
            "featured_ids": "featured_tid",
            "tag_ids": "tag_tid",
            "images": _IMAGE_COLUMNS,
        },
        _build_page,
    ),
    Family.POST: (
        ARTICLE_QUERY,
        {
            "category_ids": "category_tid",
            "tag_ids": "tag_tid",
            "images": _IMAGE_COLUMNS,
        },
        _build_article,
    ),
    Family.OPINION: (
        OPINION_QUERY,
        {
            "featured_ids": "featured_tid",
            "tag_ids": "tag_tid",
            "photos": ("photo_fid", "photo_name", "photo_uri", "photo_mime"),
        },
        _build_opinion,
    ),
    Family.HUB: (
        HUB_QUERY,
        {"tag_ids": "tag_tid", "images": _IMAGE_COLUMNS},
        _build_hub,
    ),
}


class DrupalSourceProvider:
    """Reads users, terms, nodes and files from a Drupal 7 database.

    Node queries join every multi-valued field, so their rows are folded with
    ``group_rows`` into one typed record per node.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize the provider.

        Args:
            engine (Engine): Engine bound to the Drupal database
        """
        self.engine = engine

    @classmethod
    def from_url(cls, url: str) -> DrupalSourceProvider:
        """Build the provider from a SQLAlchemy URL."""
        return cls(create_engine(url, pool_pre_ping=True, pool_recycle=3600))

    def _fetch(
        self, query: str | TextClause, **params: Any
    ) -> list[dict[str, Any]]:
        """Run a query and return its rows as dicts.

        Raises:
            SourceUnavailableError: If the query fails
        """
        try:
            with self.engine.connect() as conn:
                statement = text(query) if isinstance(query, str) else query
                result = conn.execute(statement, params)
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            raise SourceUnavailableError(f"Drupal query failed: {e}") from e

    async def ping(self) -> None:
        """Check the Drupal database connection.

        Raises:
            SourceUnavailableError: If the database cannot be queried
        """
        self._fetch("SELECT COUNT(*) AS nodes FROM node")

    async def get_users(self) -> list[SourceUser]:
        """All accounts except the anonymous user, with their role names."""
        groups = group_rows(self._fetch(USERS_QUERY), "uid", collect={"roles": "role"})
        return [
            SourceUser(
                source_id=int(g["uid"]),
                username=g.get("name") or f"user{g['uid']}",
                email=g.get("mail") or None,
                status=bool(g.get("status")),
                created=_from_unix(g.get("created")),
                roles=g["roles"],
            )
            for g in groups
        ]

    async def get_terms(self, vocabulary: str) -> list[SourceTerm]:
        """Terms of a vocabulary, one per tid even with several parents."""
        groups = group_rows(self._fetch(TERMS_QUERY, vocabulary=vocabulary), "tid")
        log.debug(f"Fetched {len(groups)} terms from vocabulary $$'{vocabulary}'$$")
        return [
            SourceTerm(
                source_id=int(g["tid"]),
                name=g.get("name") or "",
                description=g.get("description") or None,
                weight=int(g.get("weight") or 0),
                parent_id=int(g.get("parent_tid") or 0),
                vocabulary=g.get("vocabulary"),
            )
            for g in groups
        ]

    async def get_term_names(self, term_ids: Sequence[int]) -> dict[int, str]:
        """Names of the given terms, whatever their vocabulary."""
        ids = sorted({int(t) for t in term_ids})
        if not ids:
            return {}
        query = text(TERM_NAMES_QUERY).bindparams(bindparam("tids", expanding=True))
        return {int(row["tid"]): row["name"] for row in self._fetch(query, tids=ids)}

    async def get_records(self, family: Family) -> list[SourcePost]:
        """Nodes of a post family, newest first."""
        query, collect, build = _FAMILY_QUERIES[Family(family)]
        rows = self._fetch(query)
        groups = group_rows(rows, "nid", collect=collect)
        log.info(f"Fetched {len(groups)} {family} nodes from {len(rows)} joined rows")
        return [build(g) for g in groups]

    async def get_attached_files(self, source_id: int) -> list[AttachedFile]:
        """Managed files used by a node, featured image first."""
        groups = group_rows(self._fetch(ATTACHED_FILES_QUERY, nid=source_id), "fid")
        return [
            AttachedFile(
                file_id=int(g["fid"]),
                filename=g.get("filename") or "",
                uri=g.get("uri") or "",
                mime_type=g.get("filemime"),
                size=g.get("filesize"),
                is_featured=bool(g.get("is_featured")),
            )
            for g in groups
        ]
