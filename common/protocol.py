"""Wire message definitions for the blobstore gRPC service (JSON bodies)."""

from dataclasses import dataclass, asdict
from typing import Optional
import json
import base64


@dataclass
class ObjectMetadata:
    """Metadata sent ahead of an object's data pieces."""
    bucket: str
    key: str
    total_size: int
    checksum: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ObjectDataPiece:
    """A piece of object data for streaming."""
    data: bytes


def _encode_piece(piece: ObjectDataPiece) -> str:
    return base64.b64encode(piece.data).decode('ascii')


def _decode_piece(value: str) -> ObjectDataPiece:
    return ObjectDataPiece(data=base64.b64decode(value))


@dataclass
class PutObjectRequest:
    """Request message for PutObject RPC (client streaming)."""
    metadata: Optional[ObjectMetadata] = None
    data: Optional[ObjectDataPiece] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = {}
        if self.metadata:
            obj['metadata'] = self.metadata.to_dict()
        if self.data:
            obj['data'] = _encode_piece(self.data)
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PutObjectRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        metadata = ObjectMetadata(**obj['metadata']) if 'metadata' in obj else None
        piece = _decode_piece(obj['data']) if 'data' in obj else None
        return cls(metadata=metadata, data=piece)


@dataclass
class PutObjectResponse:
    """Response message for PutObject RPC."""
    success: bool
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        return json.dumps({
            'success': self.success,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PutObjectResponse':
        obj = json.loads(data)
        return cls(success=obj['success'], error_message=obj.get('error_message'))


@dataclass
class ObjectRequest:
    """
    Request addressing a single object.

    Shared by GetObject, StatObject and DeleteObject.
    """
    bucket: str
    key: str

    def to_json(self) -> bytes:
        return json.dumps({'bucket': self.bucket, 'key': self.key}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'ObjectRequest':
        obj = json.loads(data)
        return cls(bucket=obj['bucket'], key=obj['key'])


@dataclass
class GetObjectResponse:
    """Response message for GetObject RPC (server streaming)."""
    metadata: Optional[ObjectMetadata] = None
    data: Optional[ObjectDataPiece] = None

    def to_json(self) -> bytes:
        obj = {}
        if self.metadata:
            obj['metadata'] = self.metadata.to_dict()
        if self.data:
            obj['data'] = _encode_piece(self.data)
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'GetObjectResponse':
        obj = json.loads(data)
        metadata = ObjectMetadata(**obj['metadata']) if 'metadata' in obj else None
        piece = _decode_piece(obj['data']) if 'data' in obj else None
        return cls(metadata=metadata, data=piece)


@dataclass
class StatObjectResponse:
    """Response message for StatObject RPC."""
    exists: bool
    size: Optional[int] = None

    def to_json(self) -> bytes:
        return json.dumps({'exists': self.exists, 'size': self.size}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'StatObjectResponse':
        obj = json.loads(data)
        return cls(exists=obj['exists'], size=obj.get('size'))


@dataclass
class DeleteObjectResponse:
    """Response message for DeleteObject RPC."""
    success: bool
    deleted: bool = False
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        return json.dumps({
            'success': self.success,
            'deleted': self.deleted,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'DeleteObjectResponse':
        obj = json.loads(data)
        return cls(
            success=obj['success'],
            deleted=obj.get('deleted', False),
            error_message=obj.get('error_message')
        )


@dataclass
class BucketRequest:
    """Request message for BucketExists and CreateBucket RPCs."""
    bucket: str

    def to_json(self) -> bytes:
        return json.dumps({'bucket': self.bucket}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'BucketRequest':
        return cls(bucket=json.loads(data)['bucket'])


@dataclass
class BucketExistsResponse:
    """Response message for BucketExists RPC."""
    exists: bool

    def to_json(self) -> bytes:
        return json.dumps({'exists': self.exists}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'BucketExistsResponse':
        return cls(exists=json.loads(data)['exists'])


@dataclass
class CreateBucketResponse:
    """Response message for CreateBucket RPC."""
    success: bool
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        return json.dumps({
            'success': self.success,
            'error_message': self.error_message
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'CreateBucketResponse':
        obj = json.loads(data)
        return cls(success=obj['success'], error_message=obj.get('error_message'))


@dataclass
class PingRequest:
    """Request message for Ping RPC."""

    def to_json(self) -> bytes:
        return json.dumps({}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PingRequest':
        return cls()


@dataclass
class PingResponse:
    """Response message for Ping RPC."""
    available: bool

    def to_json(self) -> bytes:
        return json.dumps({'available': self.available}).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'PingResponse':
        return cls(available=json.loads(data)['available'])
