"""常量定义：集中维护 HTTP 状态码、业务错误码与系统配置键。"""

HTTP_STATUS_OK = 200

ACCESS_TOKEN_TYPE = "bearer"

# 业务错误码，沿用素材模块的既有编号
BIZ_INVALID_PARAMETER = 21001
BIZ_FOLDER_NOT_FOUND = 32601
BIZ_FOLDER_ALREADY_EXISTS = 32602
BIZ_FOLDER_DELETE_FORBIDDEN = 32603
BIZ_ATTACHMENT_NOT_FOUND = 32611
BIZ_STORAGE_UNAVAILABLE = 32621
BIZ_IO_ERROR = 32622
BIZ_OPTION_NOT_FOUND = 32631

# 系统配置键
OPTION_SYSTEM_STORAGE = "systemStorage"
OPTION_QINIU_CONFIG = "qiniuConfig"
OPTION_ALIYUN_OSS_CONFIG = "aliyunOssConfig"

# 只能经由存储配置接口校验后写入
STORAGE_OPTION_KEYS = frozenset({OPTION_SYSTEM_STORAGE, OPTION_QINIU_CONFIG, OPTION_ALIYUN_OSS_CONFIG})

STORAGE_EXPORT_FORMAT = "yishan.storage.config"
STORAGE_EXPORT_VERSION = 1

QINIU_REGIONS = ("z0", "z1", "z2", "na0", "as0")

# 对外读取时需要剔除的敏感字段
SECRET_FIELDS = {
    OPTION_QINIU_CONFIG: ("secretKey",),
    OPTION_ALIYUN_OSS_CONFIG: ("accessKeySecret",),
}

DEFAULT_QINIU_CONFIG = {
    "accessKey": "",
    "secretKey": "",
    "bucket": "",
    "region": "z0",
    "domain": "",
    "useHttps": True,
    "useCdnDomains": True,
    "tokenExpires": 3600,
    "callbackUrl": "",
    "uploadHost": "",
}

DEFAULT_ALIYUN_OSS_CONFIG = {
    "accessKeyId": "",
    "accessKeySecret": "",
    "bucket": "",
    "region": "",
    "endpoint": "",
    "domain": "",
    "useHttps": True,
}

FOLDER_NAME_MAX_LENGTH = 100
REMARK_MAX_LENGTH = 255
FILENAME_MAX_LENGTH = 255
EXT_MAX_LENGTH = 16
PAGE_SIZE_MAX = 200
