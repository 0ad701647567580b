# Development server standing in for the pinning service and the document store.
# It only ever sees ciphertext; encryption and decryption happen on the client.
import base64
import hashlib
import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone

from flask import Flask, Response, jsonify, request

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = {"name", "users"}
SORT_FIELDS = {"$createdAt", "name", "size"}

_CID_RE = re.compile(r"^b[a-z2-7]+$")
_DOC_ID_RE = re.compile(r"^[0-9a-f]{32}$")

# CIDv1 prefix: version 1, raw codec, sha2-256 multihash of 32 bytes
_CID_PREFIX = bytes([0x01, 0x55, 0x12, 0x20])


def content_id(blob):
    digest = hashlib.sha256(blob).digest()
    return "b" + base64.b32encode(_CID_PREFIX + digest).decode("ascii").lower().rstrip("=")


def _now():
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_app(storage_dir=os.path.join(".", "storage"), jwt=None):
    blob_dir = os.path.join(storage_dir, "ipfs")
    doc_dir = os.path.join(storage_dir, "documents")
    os.makedirs(blob_dir, exist_ok=True)
    os.makedirs(doc_dir, exist_ok=True)

    app = Flask(__name__)

    def authorized():
        if not jwt:
            return True
        return request.headers.get("Authorization") == f"Bearer {jwt}"

    def blob_path(cid):
        return os.path.join(blob_dir, cid)

    def doc_path(doc_id):
        return os.path.join(doc_dir, doc_id + ".json")

    def load_doc(doc_id):
        with open(doc_path(doc_id), "r") as f:
            return json.load(f)

    def save_doc(doc):
        with open(doc_path(doc["$id"]), "w") as f:
            json.dump(doc, f)

    # ---- pinning service ----

    @app.route("/pinning/pinFileToIPFS", methods=["POST"])
    def pin_file():
        if not authorized():
            return jsonify({"error": "Unauthorized"}), 401
        upload = request.files.get("file")
        if upload is None:
            return jsonify({"error": "No file provided"}), 400

        blob = upload.read()
        cid = content_id(blob)
        path = blob_path(cid)
        if not os.path.exists(path):
            with open(path, "wb") as f:
                f.write(blob)
        logger.info("Pinned %s (%d bytes)", cid, len(blob))
        return jsonify({"IpfsHash": cid, "PinSize": len(blob), "Timestamp": _now()}), 200

    @app.route("/pinning/unpin/<cid>", methods=["DELETE"])
    def unpin_file(cid):
        if not authorized():
            return jsonify({"error": "Unauthorized"}), 401
        if not _CID_RE.match(cid) or not os.path.exists(blob_path(cid)):
            return jsonify({"error": "Not pinned"}), 404
        os.remove(blob_path(cid))
        return "OK", 200

    @app.route("/ipfs/<cid>", methods=["GET"])
    def gateway(cid):
        if not _CID_RE.match(cid) or not os.path.exists(blob_path(cid)):
            return jsonify({"error": "Not found"}), 404
        with open(blob_path(cid), "rb") as f:
            blob = f.read()
        return Response(blob, mimetype="application/octet-stream")

    # ---- document store ----

    base = "/databases/<database_id>/collections/<collection_id>/documents"

    @app.route(base, methods=["POST"])
    def create_document(database_id, collection_id):
        body = request.get_json(silent=True) or {}
        data = body.get("data")
        if not isinstance(data, dict):
            return jsonify({"error": "Missing data"}), 400

        doc = {k: v for k, v in data.items() if not k.startswith("$")}
        doc["$id"] = uuid.uuid4().hex
        doc["$createdAt"] = doc["$updatedAt"] = _now()
        save_doc(doc)
        return jsonify(doc), 201

    @app.route(base, methods=["GET"])
    def list_documents(database_id, collection_id):
        owner = request.args.get("owner", "")
        types = request.args.getlist("type")
        search = request.args.get("search", "").lower()
        order_by = request.args.get("orderBy", "$createdAt")
        descending = request.args.get("order", "desc") == "desc"
        if order_by not in SORT_FIELDS:
            return jsonify({"error": f"Cannot sort by {order_by}"}), 400
        try:
            limit = int(request.args.get("limit", 0))
        except ValueError:
            return jsonify({"error": "Invalid limit"}), 400

        docs = []
        for filename in os.listdir(doc_dir):
            if not filename.endswith(".json"):
                continue
            doc = load_doc(filename[:-5])
            if owner and doc.get("owner") != owner and owner not in doc.get("users", []):
                continue
            if types and doc.get("type") not in types:
                continue
            if search and search not in doc.get("name", "").lower():
                continue
            docs.append(doc)

        def sort_key(doc):
            if order_by == "size":
                return int(doc.get("size") or 0)
            value = str(doc.get(order_by, ""))
            return value.lower() if order_by == "name" else value

        docs.sort(key=sort_key, reverse=descending)
        if limit > 0:
            docs = docs[:limit]
        return jsonify({"total": len(docs), "documents": docs}), 200

    @app.route(base + "/<doc_id>", methods=["GET"])
    def get_document(database_id, collection_id, doc_id):
        if not _DOC_ID_RE.match(doc_id) or not os.path.exists(doc_path(doc_id)):
            return jsonify({"error": "Document not found"}), 404
        return jsonify(load_doc(doc_id)), 200

    @app.route(base + "/<doc_id>", methods=["PATCH"])
    def update_document(database_id, collection_id, doc_id):
        if not _DOC_ID_RE.match(doc_id) or not os.path.exists(doc_path(doc_id)):
            return jsonify({"error": "Document not found"}), 404
        body = request.get_json(silent=True) or {}
        data = body.get("data")
        if not isinstance(data, dict) or not data:
            return jsonify({"error": "Missing data"}), 400
        rejected = set(data) - MUTABLE_FIELDS
        if rejected:
            return jsonify({"error": f"Fields cannot be updated: {sorted(rejected)}"}), 400
        if "name" in data and not (isinstance(data["name"], str) and data["name"].strip()):
            return jsonify({"error": "Invalid name"}), 400
        if "users" in data and not (
            isinstance(data["users"], list) and all(isinstance(u, str) for u in data["users"])
        ):
            return jsonify({"error": "Invalid users"}), 400

        doc = load_doc(doc_id)
        doc.update(data)
        doc["$updatedAt"] = _now()
        save_doc(doc)
        return jsonify(doc), 200

    @app.route(base + "/<doc_id>", methods=["DELETE"])
    def delete_document(database_id, collection_id, doc_id):
        if not _DOC_ID_RE.match(doc_id) or not os.path.exists(doc_path(doc_id)):
            return jsonify({"error": "Document not found"}), 404
        os.remove(doc_path(doc_id))
        return "", 204

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app(jwt=os.environ.get("PINATA_JWT"))
    app.run(host="127.0.0.1", port=5000)
