"""
Registry of transaction hashes that already paid for a tool invocation
"""

import threading
from typing import Set


class SpentProofRegistry:
    """Remembers claimed payment proofs so one transfer pays for one invocation"""

    def __init__(self):
        self._claimed: Set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def _key(tx_hash: str) -> str:
        key = tx_hash.lower()
        return key if key.startswith("0x") else f"0x{key}"

    def is_claimed(self, tx_hash: str) -> bool:
        with self._lock:
            return self._key(tx_hash) in self._claimed

    def claim(self, tx_hash: str) -> bool:
        """Mark a proof as spent; False when it was already spent"""
        key = self._key(tx_hash)
        with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    def release(self, tx_hash: str):
        """Make a claimed proof spendable again"""
        with self._lock:
            self._claimed.discard(self._key(tx_hash))

    def __len__(self) -> int:
        return len(self._claimed)
