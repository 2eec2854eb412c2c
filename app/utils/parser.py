from typing import List, Dict, Any, Iterable, Optional
from loguru import logger
from app.services.models import RemoteDirectory, RemoteFile, RemoteFileNode, ResolvedFile


def parse_file_nodes(items: Iterable[Dict[str, Any]]) -> List[RemoteFileNode]:
    """
    Converts the raw v4.1 file tree into typed nodes.
    Wire shape: directories are {n, e: [...]}, files are {n, l, s}.
    Entries carrying neither are dropped.
    """
    nodes: List[RemoteFileNode] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        name = str(item.get("n") or "")
        if item.get("e"):
            nodes.append(RemoteDirectory(name=name, children=parse_file_nodes(item["e"])))
        elif item.get("l"):
            nodes.append(RemoteFile(name=name, link=item["l"], size_bytes=item.get("s")))
        else:
            logger.debug(f"Skipping file entry without link or children: {name!r}")
    return nodes


def flatten_files(nodes: Iterable[RemoteFileNode], path_prefix: str = "") -> List[ResolvedFile]:
    """
    Depth-first walk in input order. Paths are ancestor names joined by "/".
    """
    files: List[ResolvedFile] = []
    for node in nodes:
        if isinstance(node, RemoteDirectory):
            files.extend(flatten_files(node.children, f"{path_prefix}{node.name}/"))
        else:
            files.append(ResolvedFile(
                path=f"{path_prefix}{node.name}",
                stream_url=node.link,
                size_bytes=node.size_bytes,
            ))
    return files


class VideoParser:
    VIDEO_EXTENSIONS = ("mp4", "mkv", "avi", "mov", "wmv", "webm")

    @staticmethod
    def get_extension(path: str) -> Optional[str]:
        name = path.rsplit("/", 1)[-1]
        if "." not in name:
            return None
        return name.rsplit(".", 1)[-1].lower() or None

    @staticmethod
    def is_video(path: str) -> bool:
        return VideoParser.get_extension(path) in VideoParser.VIDEO_EXTENSIONS

    @staticmethod
    def filter_videos(files: Iterable[ResolvedFile]) -> List[ResolvedFile]:
        return [f for f in files if VideoParser.is_video(f.path)]


is_video = VideoParser.is_video
filter_videos = VideoParser.filter_videos
