"""Keccak-256 Merkle tree over weekly reward leaves.

Leaf encoding: ``keccak256(u32_le(index) || utf8(wallet) || u64_le(amount))``.
Parents hash the two children in sorted order, so a proof is a plain list of
sibling hashes with no left/right bits. An odd node at any level is paired
with itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from Crypto.Hash import keccak

_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def to_hex(digest: bytes) -> str:
    return "0x" + digest.hex()


def from_hex(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def leaf_hash(index: int, wallet: str, amount: int) -> bytes:
    if not 0 <= index <= _U32_MAX:
        raise ValueError(f"leaf index out of u32 range: {index}")
    if not 0 <= amount <= _U64_MAX:
        raise ValueError(f"leaf amount out of u64 range: {amount}")
    return keccak256(
        index.to_bytes(4, "little") + wallet.encode("utf-8") + amount.to_bytes(8, "little")
    )


def hash_pair(a: bytes, b: bytes) -> bytes:
    return keccak256(a + b if a <= b else b + a)


@dataclass(frozen=True)
class MerkleTree:
    leaves: tuple[bytes, ...]
    layers: tuple[tuple[bytes, ...], ...]

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    def proof(self, index: int) -> list[bytes]:
        if not 0 <= index < len(self.leaves):
            raise IndexError(index)
        siblings = []
        for layer in self.layers[:-1]:
            sibling = index ^ 1
            # Odd tail is paired with itself
            siblings.append(layer[sibling] if sibling < len(layer) else layer[index])
            index //= 2
        return siblings


def build_tree(leaves: Sequence[bytes]) -> MerkleTree:
    if not leaves:
        raise ValueError("cannot build a Merkle tree with no leaves")
    layers = [tuple(leaves)]
    while len(layers[-1]) > 1:
        level = layers[-1]
        parents = []
        for i in range(0, len(level), 2):
            left = level[i]
            right = level[i + 1] if i + 1 < len(level) else left
            parents.append(hash_pair(left, right))
        layers.append(tuple(parents))
    return MerkleTree(leaves=tuple(leaves), layers=tuple(layers))


def verify_proof(leaf: bytes, proof: Sequence[bytes], root: bytes) -> bool:
    node = leaf
    for sibling in proof:
        node = hash_pair(node, sibling)
    return node == root
