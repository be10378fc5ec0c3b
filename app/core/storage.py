"""
文件存储系统 - 支持本地存储和S3兼容的对象存储(Supabase Storage / AWS S3)
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.core.exceptions import StorageException, ConfigurationException
from app.core.logging import storage_logger
from app.utils.file_utils import generate_unique_filename


@dataclass
class StoredObject:
    """已上传对象的信息"""
    key: str
    unique_filename: str
    public_url: str
    size: int


class StorageBackend(ABC):
    """存储后端抽象基类"""

    @abstractmethod
    async def upload(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """上传文件，返回存储路径"""
        pass

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        """获取文件的长期公开访问URL"""
        pass


class LocalStorageBackend(StorageBackend):
    """本地文件存储后端，文件通过 /files 静态路由访问"""

    def __init__(self, base_path: str, public_base_url: Optional[str] = None):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or "").rstrip("/")

    def _get_full_path(self, key: str) -> Path:
        """获取完整文件路径"""
        return self.base_path / key

    async def upload(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """上传文件到本地存储"""
        full_path = self._get_full_path(key)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        # 不允许覆盖已存在的对象
        if full_path.exists():
            raise StorageException(f"Object already exists: {key}")

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, full_path.write_bytes, content)
        except OSError as e:
            raise StorageException(f"Failed to write file to local storage: {e}") from e

        return str(full_path)

    def get_public_url(self, key: str) -> str:
        """本地存储返回 /files 下的URL"""
        return f"{self.public_base_url}/files/{key}"


class S3StorageBackend(StorageBackend):
    """S3兼容对象存储后端"""

    def __init__(
        self,
        bucket_name: str,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None
    ):
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.public_base_url = (public_base_url or "").rstrip("/")
        self.s3_client = client or boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key
        )

    async def upload(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """上传文件到S3"""
        upload_args = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": content
        }
        if content_type:
            upload_args["ContentType"] = content_type

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                lambda: self.s3_client.put_object(**upload_args)
            )
        except (ClientError, BotoCoreError) as e:
            storage_logger.error(f"S3上传失败: {e}")
            raise StorageException(f"Failed to upload file to object storage: {e}") from e

        return f"s3://{self.bucket_name}/{key}"

    def get_public_url(self, key: str) -> str:
        """获取公开URL（桶需配置为公开读取）"""
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        return f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{key}"


class FileStorageManager:
    """文件存储管理器"""

    def __init__(self, backends: Optional[Dict[str, StorageBackend]] = None, default_backend: Optional[str] = None):
        self.backends: Dict[str, StorageBackend] = backends or {}
        self.default_backend = default_backend or settings.storage_backend
        self.prefix = settings.storage_prefix.strip("/")
        if not backends:
            self._setup_backends()

    def _setup_backends(self):
        """设置存储后端"""
        self.backends["local"] = LocalStorageBackend(
            settings.upload_dir,
            public_base_url=settings.storage_public_base_url
        )

        if self.default_backend == "s3":
            self.backends["s3"] = S3StorageBackend(
                bucket_name=settings.storage_bucket,
                region_name=settings.aws_region,
                endpoint_url=settings.s3_endpoint_url,
                public_base_url=settings.storage_public_base_url
            )

    def get_backend(self, backend_name: Optional[str] = None) -> StorageBackend:
        """获取存储后端"""
        backend_name = backend_name or self.default_backend
        if backend_name not in self.backends:
            raise ConfigurationException(f"Unknown storage backend: {backend_name}")
        return self.backends[backend_name]

    def build_key(self, unique_filename: str) -> str:
        """生成对象键"""
        if self.prefix:
            return f"{self.prefix}/{unique_filename}"
        return unique_filename

    async def upload_recording(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        backend_name: Optional[str] = None
    ) -> StoredObject:
        """上传录音文件并返回公开URL"""
        backend = self.get_backend(backend_name)
        unique_filename = generate_unique_filename(filename)
        key = self.build_key(unique_filename)

        storage_path = await backend.upload(key, content, content_type)
        public_url = backend.get_public_url(key)

        storage_logger.info(f"录音已上传: {storage_path} ({len(content)} bytes)")

        return StoredObject(
            key=key,
            unique_filename=unique_filename,
            public_url=public_url,
            size=len(content)
        )


# 全局存储管理器实例
storage_manager: Optional[FileStorageManager] = None


def get_storage_manager() -> FileStorageManager:
    """获取存储管理器实例"""
    global storage_manager
    if storage_manager is None:
        storage_manager = FileStorageManager()
    return storage_manager
