"""Help menu texts, sent as one forwarded message with a node per section."""

GROUP_ADMIN_MENU = """【群管指令】
踢出@某人 / 踢出QQ号
禁言@某人 分钟 / 禁言QQ号 分钟（默认10分钟）
解禁@某人 / 解禁QQ号
全体禁言 / 全体解禁
授予头衔@某人 内容 / 清除头衔@某人
锁定名片@某人 / 解锁名片@某人 / 名片锁定列表"""

TARGET_MENU = """【针对（自动撤回）】
针对@某人 / 针对QQ号
取消针对@某人
针对列表
清除针对"""

BLACKWHITE_MENU = """【黑白名单】
拉黑@某人 / 取消拉黑@某人 / 黑名单列表（主人）
群拉黑@某人 / 群取消拉黑@某人 / 群黑名单列表
白名单@某人 / 取消白名单@某人 / 白名单列表（主人）"""

FILTER_MENU = """【违禁词】
添加违禁词 词语（主人）
删除违禁词 词语（主人）
违禁词列表"""

ANTI_RECALL_MENU = """【防撤回】
开启防撤回 / 关闭防撤回
防撤回列表"""

EMOJI_REACT_MENU = """【回应表情】
开启回应表情 [@某人 / QQ号 / self]
关闭回应表情"""

QA_MENU = """【问答】
添加问答 关键词|回复（精确匹配）
添加模糊问答 关键词|回复（包含匹配）
添加正则问答 正则|回复
删除问答 关键词
问答列表
回复中可用 {user} {group} 占位符"""

HELP_SECTIONS = [
    GROUP_ADMIN_MENU,
    TARGET_MENU,
    BLACKWHITE_MENU,
    FILTER_MENU,
    ANTI_RECALL_MENU,
    EMOJI_REACT_MENU,
    QA_MENU,
]
