"""Fake in-memory database layer for behavioral testing of the RAG pipeline."""

import math
import uuid
import zlib
from contextlib import ExitStack, contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List
from unittest.mock import patch

from cardy.core.config import get_settings

EMBEDDING_DIM = 1536


def fake_embedding(text: str) -> List[float]:
    """Deterministic bag-of-words vector: texts sharing words are similar."""
    vector = [0.0] * EMBEDDING_DIM
    for word in text.lower().split():
        word = word.strip(".,!?:;()\"'")
        if word:
            vector[zlib.crc32(word.encode()) % EMBEDDING_DIM] += 1.0
    return vector


def cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeDB:
    """In-memory implementation of the cardy.db functions."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all stores to initial state."""
        self.projects: Dict[str, Dict[str, Any]] = {}
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.chunks: List[Dict[str, Any]] = []
        self.story_artifacts: Dict[str, Dict[str, Any]] = {}
        self.contexts: Dict[str, Dict[str, Any]] = {}
        self.access_log: List[Dict[str, Any]] = []
        self.uploaded_files: Dict[str, bytes] = {}
        # When set, the similarity RPC ignores its project/document filters
        self.leaky_rpc = False

    # Seeding helpers
    def add_project(self, project_id: str, name: str = "Project", **fields: Any) -> Dict[str, Any]:
        project = {"id": project_id, "name": name, "type": "Child Welfare", **fields}
        self.projects[project_id] = project
        return project

    def add_document(
        self,
        document_id: str,
        project_id: str,
        title: str,
        text: str = "",
        document_type: str = "system-requirements",
        chunk_texts: List[str] | None = None,
        **fields: Any,
    ) -> Dict[str, Any]:
        doc = {
            "id": document_id,
            "project_id": project_id,
            "title": title,
            "filename": f"{title}.md",
            "document_type": document_type,
            "content_kind": "raw",
            "content": text,
            "processing_status": "completed",
            **fields,
        }
        self.documents[document_id] = doc
        for i, chunk_text in enumerate(chunk_texts or []):
            self.chunks.append(
                {
                    "id": str(uuid.uuid4()),
                    "document_id": document_id,
                    "project_id": project_id,
                    "document_type": document_type,
                    "chunk_index": i,
                    "chunk_text": chunk_text,
                    "embedding": fake_embedding(chunk_text),
                    "metadata": {},
                }
            )
        return doc

    # cardy.db.projects
    def get_project(self, project_id) -> Dict[str, Any] | None:
        return self.projects.get(str(project_id))

    # cardy.db.documents
    def get_document(self, document_id) -> Dict[str, Any] | None:
        return self.documents.get(str(document_id))

    def get_documents(self, document_ids: List[str]) -> List[Dict[str, Any]]:
        return [self.documents[str(d)] for d in document_ids if str(d) in self.documents]

    def check_duplicate(self, project_id, checksum: str, title: str, filename: str,
                        document_type: str, source_url=None) -> Dict[str, Any] | None:
        for doc in self.documents.values():
            if (
                doc["project_id"] == str(project_id)
                and doc.get("checksum") == checksum
                and doc.get("title") == title
                and doc.get("filename") == filename
                and doc.get("document_type") == document_type
                and doc.get("source_url") == source_url
            ):
                return doc
        return None

    def upload_file(self, storage_path: str, file_bytes: bytes, mime_type: str) -> None:
        self.uploaded_files[storage_path] = file_bytes

    def delete_file(self, storage_path: str) -> None:
        self.uploaded_files.pop(storage_path, None)

    def create_document(self, **record: Any) -> Dict[str, Any]:
        doc_id = str(uuid.uuid4())
        doc = {"id": doc_id, **record, "project_id": str(record["project_id"]),
               "processing_status": "pending"}
        self.documents[doc_id] = doc
        return doc

    def claim_document_for_processing(self, document_id, force: bool = False) -> bool:
        doc = self.documents.get(str(document_id))
        if not doc:
            return False
        status = doc["processing_status"]
        claimable = status == "pending"
        if force:
            started = doc.get("processing_started_at")
            stale = started is not None and started < datetime.now(timezone.utc) - timedelta(
                seconds=get_settings().PROCESSING_STALE_SECONDS
            )
            claimable = status in ("pending", "completed", "partial", "failed") or (
                status == "processing" and stale
            )
        if not claimable:
            return False
        doc["processing_status"] = "processing"
        doc["processing_started_at"] = datetime.now(timezone.utc)
        return True

    def update_document_processing(self, document_id, status: str, error=None,
                                   total_chunks=None, embedded_chunks=None) -> Dict[str, Any]:
        doc = self.documents[str(document_id)]
        doc.update({"processing_status": status, "processing_error": error})
        if total_chunks is not None:
            doc["total_chunks"] = total_chunks
        if embedded_chunks is not None:
            doc["embedded_chunks"] = embedded_chunks
        return doc

    # cardy.db.chunks
    def delete_document_chunks(self, document_id) -> None:
        self.chunks = [c for c in self.chunks if c["document_id"] != str(document_id)]

    def insert_document_chunks(self, document, chunks, embeddings) -> List[Dict[str, Any]]:
        rows = []
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            row = {
                "id": str(uuid.uuid4()),
                "document_id": str(document["id"]),
                "project_id": str(document["project_id"]),
                "document_type": document.get("document_type"),
                "chunk_index": chunk["chunk_index"],
                "chunk_text": chunk["content"],
                "embedding": embedding,
                "metadata": {"start_char": chunk["start_char"], "end_char": chunk["end_char"]},
            }
            self.chunks.append(row)
            rows.append(row)
        return rows

    def search_document_chunks(self, query_embedding, match_threshold, match_count,
                               project_id, document_ids=None) -> List[Dict[str, Any]]:
        results = []
        for chunk in self.chunks:
            if not self.leaky_rpc:
                if chunk["project_id"] != str(project_id):
                    continue
                if document_ids and chunk["document_id"] not in document_ids:
                    continue
            similarity = cosine(query_embedding, chunk["embedding"])
            if similarity < match_threshold:
                continue
            doc = self.documents.get(chunk["document_id"], {})
            results.append(
                {
                    "id": chunk["id"],
                    "document_id": chunk["document_id"],
                    "project_id": chunk["project_id"],
                    "document_type": chunk["document_type"],
                    "document_title": doc.get("title"),
                    "chunk_index": chunk["chunk_index"],
                    "chunk_text": chunk["chunk_text"],
                    "similarity": similarity,
                }
            )
        results.sort(key=lambda r: r["similarity"], reverse=True)
        return results[:match_count]

    def list_scope_documents(self, project_id, document_ids=None) -> List[Dict[str, Any]]:
        return [
            d for d in self.documents.values()
            if d["project_id"] == str(project_id) and (not document_ids or d["id"] in document_ids)
        ]

    # cardy.db.story_artifacts
    def get_story_artifacts(self, story_id: str) -> Dict[str, Any] | None:
        return self.story_artifacts.get(story_id)

    def save_artifact_content(self, story_id, artifact_type, content, project_id=None,
                              sprint_id=None) -> Dict[str, Any]:
        row = self.story_artifacts.setdefault(story_id, {"story_id": story_id})
        row[artifact_type.content_column] = content
        if project_id:
            row["project_id"] = project_id
        if sprint_id:
            row["sprint_id"] = sprint_id
        return row

    # cardy.db.project_context
    def get_context(self, session_id: str) -> Dict[str, Any] | None:
        return self.contexts.get(session_id)

    # cardy.db.document_access
    def record_access(self, document_ids, query_text, access_type="query") -> None:
        for doc_id in document_ids:
            self.access_log.append(
                {"document_id": doc_id, "query_text": query_text, "access_type": access_type}
            )


fake_db = FakeDB()


async def fake_embed_text_with_retry(text: str) -> List[float]:
    return fake_embedding(text)


@contextmanager
def patched_db(db: FakeDB = fake_db):
    """Route every cardy.db call used by the core modules to the fake."""
    targets = {
        "cardy.core.scope.get_project": db.get_project,
        "cardy.core.scope.get_documents": db.get_documents,
        "cardy.core.scope.get_context": db.get_context,
        "cardy.core.retrieval.search_document_chunks": db.search_document_chunks,
        "cardy.core.retrieval.list_scope_documents": db.list_scope_documents,
        "cardy.core.retrieval.embed_text_with_retry": fake_embed_text_with_retry,
        "cardy.core.context_assembly.record_access": db.record_access,
        "cardy.core.generation.list_scope_documents": db.list_scope_documents,
        "cardy.core.generation.get_project": db.get_project,
        "cardy.core.generation.get_story_artifacts": db.get_story_artifacts,
        "cardy.core.generation.save_artifact_content": db.save_artifact_content,
        "cardy.core.chat.get_document": db.get_document,
        "cardy.core.ingestion.get_project": db.get_project,
        "cardy.core.ingestion.check_duplicate": db.check_duplicate,
        "cardy.core.ingestion.upload_file": db.upload_file,
        "cardy.core.ingestion.delete_file": db.delete_file,
        "cardy.core.ingestion.create_document": db.create_document,
        "cardy.core.document_processing.get_document": db.get_document,
        "cardy.core.document_processing.claim_document_for_processing": db.claim_document_for_processing,
        "cardy.core.document_processing.update_document_processing": db.update_document_processing,
        "cardy.core.document_processing.delete_document_chunks": db.delete_document_chunks,
        "cardy.core.document_processing.insert_document_chunks": db.insert_document_chunks,
        "cardy.core.document_processing.embed_text_with_retry": fake_embed_text_with_retry,
        "cardy.api.documents.get_document": db.get_document,
    }
    with ExitStack() as stack:
        for target, fake in targets.items():
            stack.enter_context(patch(target, side_effect=fake))
        yield db
