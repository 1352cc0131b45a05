"""项目内使用的自定义异常定义。"""


class ImageDerivativesError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageDerivativesError):
    """配置或编码参数不合法时抛出。"""


class UnknownProfileError(InvalidConfigurationError):
    """请求了未注册的编码配置。"""


class CodecError(ImageDerivativesError):
    """编解码阶段失败。"""


class DecodeError(CodecError):
    """源图片无法读取或格式不受支持。"""


class EncodeError(CodecError):
    """目标格式或参数被编码器拒绝。"""


class FilesystemError(ImageDerivativesError):
    """目录/文件访问、写入或重命名失败。"""


class SourceDirectoryError(FilesystemError):
    """源目录不存在或无法枚举，整个批次终止。"""
