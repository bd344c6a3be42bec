"""应用名解析

把模型给出的人类可读应用名映射为可启动的包名。
"""

import re
from typing import Dict, List, Optional, Protocol

PACKAGE_PATTERN = re.compile(r"^[a-zA-Z][\w]*(\.[a-zA-Z_][\w]*)+$")

DEFAULT_APP_PACKAGES: Dict[str, str] = {
    "微信": "com.tencent.mm",
    "wechat": "com.tencent.mm",
    "qq": "com.tencent.mobileqq",
    "企业微信": "com.tencent.wework",
    "钉钉": "com.alibaba.android.rimet",
    "飞书": "com.ss.android.lark",
    "支付宝": "com.eg.android.AlipayGphone",
    "alipay": "com.eg.android.AlipayGphone",
    "淘宝": "com.taobao.taobao",
    "taobao": "com.taobao.taobao",
    "京东": "com.jingdong.app.mall",
    "拼多多": "com.xunmeng.pinduoduo",
    "美团": "com.sankuai.meituan",
    "抖音": "com.ss.android.ugc.aweme",
    "快手": "com.smile.gifmaker",
    "微博": "com.sina.weibo",
    "小红书": "com.xingin.xhs",
    "知乎": "com.zhihu.android",
    "b站": "tv.danmaku.bili",
    "bilibili": "tv.danmaku.bili",
    "高德地图": "com.autonavi.minimap",
    "滴滴": "com.sdu.didi.psnger",
    "网易云音乐": "com.netease.cloudmusic",
    "设置": "com.android.settings",
    "settings": "com.android.settings",
    "相机": "com.android.camera",
    "chrome": "com.android.chrome",
    "电话": "com.android.dialer",
    "短信": "com.android.mms",
    "日历": "com.android.calendar",
    "计算器": "com.android.calculator2",
    "时钟": "com.android.deskclock",
}


class AppResolver(Protocol):
    def resolve(self, name: str) -> Optional[str]:
        ...

    def known_names(self) -> List[str]:
        ...


class MappingAppResolver:
    """基于映射表的解析：精确匹配 -> 忽略大小写 -> 包含匹配；已经是包名的原样返回"""

    def __init__(self, extra: Optional[Dict[str, str]] = None, include_defaults: bool = True):
        self._table: Dict[str, str] = dict(DEFAULT_APP_PACKAGES) if include_defaults else {}
        self._table.update(extra or {})
        self._lower = {k.lower(): v for k, v in self._table.items()}

    def known_names(self) -> List[str]:
        return list(self._table)

    def resolve(self, name: str) -> Optional[str]:
        name = (name or "").strip()
        if not name:
            return None
        if name in self._table:
            return self._table[name]

        lowered = name.lower()
        if lowered in self._lower:
            return self._lower[lowered]

        if PACKAGE_PATTERN.match(name):
            return name

        if len(lowered) < 2:
            return None
        # 最长的名字优先，避免“微信”抢先匹配“企业微信”
        for key in sorted(self._lower, key=len, reverse=True):
            if key in lowered or lowered in key:
                return self._lower[key]
        return None
