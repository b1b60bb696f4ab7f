# electiontracker/audit/audit_logger.py

import base64
import hashlib
import json
import logging
import os
from datetime import datetime

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

logger = logging.getLogger(__name__)

# Append-only JSON lines. Each entry stores the hash of the previous one and an
# Ed25519 signature over its own body, so edits or reordering are detectable.

VOTES_SUBMITTED = 'votes_submitted'
VOTE_SUBMISSION_DENIED = 'vote_submission_denied'
LOCATION_DELETED = 'location_deleted'
CANDIDATE_DELETED = 'candidate_deleted'
LOGIN_SUCCEEDED = 'login_succeeded'
LOGIN_FAILED = 'login_failed'


def load_signing_key(path):
    """Ed25519 key from a PEM file, created on first use so restarts keep signing with it."""
    if os.path.exists(path):
        with open(path, 'rb') as f:
            key = serialization.load_pem_private_key(f.read(), password=None)
        if not isinstance(key, Ed25519PrivateKey):
            raise ValueError(f"{path} does not hold an Ed25519 private key")
        return key

    key = Ed25519PrivateKey.generate()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    except FileExistsError:
        # Another worker created it first
        return load_signing_key(path)
    with os.fdopen(fd, 'wb') as f:
        f.write(pem)
    logger.info("Generated audit signing key at %s", path)
    return key


class AuditLogger:
    def __init__(self, log_dir='logs', signing_key=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.previous_hash = None

        os.makedirs(log_dir, exist_ok=True)

        if signing_key is None:
            logger.warning("No audit signing key configured; signatures only verify within this process")
            signing_key = Ed25519PrivateKey.generate()
        self.signing_key = signing_key
        self._load_previous_hash()

    def _load_previous_hash(self):
        if not os.path.exists(self.log_file):
            return
        with open(self.log_file, 'r', encoding='utf-8') as f:
            lines = [line for line in f if line.strip()]
        if not lines:
            return
        try:
            self.previous_hash = json.loads(lines[-1]).get('hash')
        except json.JSONDecodeError:
            logger.error("Audit log %s ends with an unreadable entry", self.log_file)
            self.previous_hash = None

    @staticmethod
    def _body(entry):
        body = {k: v for k, v in entry.items() if k not in ('hash', 'signature')}
        return json.dumps(body, sort_keys=True).encode()

    def record(self, event_type, data, actor_id=None):
        """Append one event; returns its hash, or None if it could not be written."""
        try:
            # Another process may have appended since our last write
            self._load_previous_hash()
        except OSError:
            logger.exception("Could not read audit log %s", self.log_file)
            return None
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "event_type": event_type,
            "data": data,
            "actor_id": actor_id,
            "previous_hash": self.previous_hash,
        }
        body = self._body(entry)
        entry['hash'] = hashlib.sha256(body).hexdigest()
        entry['signature'] = base64.b64encode(self.signing_key.sign(body)).decode()
        try:
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(entry, sort_keys=True) + "\n")
        except OSError:
            # The audited operation has already committed; keep it and report loudly.
            logger.exception("Could not write audit event %s", event_type)
            return None
        self.previous_hash = entry['hash']
        return entry['hash']

    def entries(self):
        if not os.path.exists(self.log_file):
            return []
        with open(self.log_file, 'r', encoding='utf-8') as f:
            return [json.loads(line) for line in f if line.strip()]

    def verify_log_integrity(self):
        public_key = self.signing_key.public_key()
        previous_hash = None
        try:
            for entry in self.entries():
                if entry.get('previous_hash') != previous_hash:
                    return False
                body = self._body(entry)
                if hashlib.sha256(body).hexdigest() != entry.get('hash'):
                    return False
                public_key.verify(base64.b64decode(entry['signature']), body)
                previous_hash = entry['hash']
        except (InvalidSignature, KeyError, ValueError) as e:
            logger.warning("Audit log verification failed: %s", e)
            return False
        return True
