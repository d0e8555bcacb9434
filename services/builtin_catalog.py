"""
Built-in effects shipped with the studio.

This is the document written to the default catalog at deployment time
by scripts/seed_default_catalog.py. The application itself never writes
the default catalog.
"""

from api.schemas.prompts import CUSTOM_PROMPT_KEY, CUSTOM_PROMPT_SENTINEL, TransformationCategory


def _entry(
    en_name: str,
    zh_name: str,
    en_prompt: str,
    zh_prompt: str,
    icon: str,
    category: TransformationCategory,
) -> dict[str, str]:
    return {
        "en_name": en_name,
        "zh_name": zh_name,
        "en_prompt": en_prompt,
        "zh_prompt": zh_prompt,
        "icon": icon,
        "type": category.value,
    }


DEFAULT_CATALOG: dict[str, dict[str, str]] = {
    CUSTOM_PROMPT_KEY: _entry(
        "Custom Prompt", "自定义提示词",
        CUSTOM_PROMPT_SENTINEL, CUSTOM_PROMPT_SENTINEL,
        "edit", TransformationCategory.CUSTOM,
    ),
    # Style
    "watercolor": _entry(
        "Watercolor", "水彩画",
        "Turn the image into a watercolor painting.",
        "将图片转换为水彩画。",
        "palette", TransformationCategory.STYLE,
    ),
    "vintage_70s": _entry(
        "Vintage 70s", "70年代复古",
        "Make it look like a vintage photograph from the 1970s.",
        "让它看起来像一张 1970 年代的复古照片。",
        "photo_camera", TransformationCategory.STYLE,
    ),
    "charcoal_sketch": _entry(
        "Charcoal Sketch", "炭笔素描",
        "Make the subject look like a hand-drawn charcoal sketch.",
        "让主体看起来像一幅手绘炭笔素描。",
        "draw", TransformationCategory.STYLE,
    ),
    "film_noir": _entry(
        "Film Noir", "黑色电影",
        "Convert the image to a black and white film noir style.",
        "将图片转换为黑白黑色电影风格。",
        "movie", TransformationCategory.STYLE,
    ),
    "van_gogh_style": _entry(
        "Van Gogh Style", "梵高风格",
        "Reimagine the photo in the style of Van Gogh's 'Starry Night'.",
        "以梵高《星月夜》的风格重新演绎这张照片。",
        "brush", TransformationCategory.STYLE,
    ),
    "pixel_art_16bit": _entry(
        "16-bit Pixel Art", "16位像素画",
        "Make it a pixel art scene from a 16-bit video game.",
        "把它变成 16 位电子游戏中的像素画场景。",
        "grid_on", TransformationCategory.STYLE,
    ),
    "low_poly": _entry(
        "Low Poly", "低多边形",
        "Render the image in a low-poly geometric style.",
        "以低多边形几何风格渲染图片。",
        "change_history", TransformationCategory.STYLE,
    ),
    "classic_anime": _entry(
        "Classic Anime", "经典动画",
        "Make it look like a frame from a classic anime film.",
        "让它看起来像经典动画电影中的一帧。",
        "animation", TransformationCategory.STYLE,
    ),
    "pop_art": _entry(
        "Pop Art", "波普艺术",
        "Give it a pop art style like Andy Warhol.",
        "赋予它安迪·沃霍尔式的波普艺术风格。",
        "style", TransformationCategory.STYLE,
    ),
    # Elements
    "wildflowers": _entry(
        "Wildflowers", "野花",
        "Add a field of vibrant wildflowers in the foreground.",
        "在前景添加一片鲜艳的野花。",
        "local_florist", TransformationCategory.ELEMENTS,
    ),
    "dragon_in_sky": _entry(
        "Dragon in the Sky", "空中巨龙",
        "Add a majestic dragon flying in the sky.",
        "添加一条在天空中翱翔的雄伟巨龙。",
        "flight", TransformationCategory.ELEMENTS,
    ),
    "add_cat": _entry(
        "Add a Cat", "添加小猫",
        "Add a cute, fluffy cat sitting next to the main subject.",
        "在主体旁边添加一只可爱的毛茸茸的小猫。",
        "pets", TransformationCategory.ELEMENTS,
    ),
    "rainbow": _entry(
        "Rainbow", "彩虹",
        "Add a rainbow arching across the sky.",
        "添加一道横跨天空的彩虹。",
        "looks", TransformationCategory.ELEMENTS,
    ),
    "butterflies": _entry(
        "Butterflies", "蝴蝶",
        "Add butterflies fluttering around the subject.",
        "添加围绕主体飞舞的蝴蝶。",
        "flutter_dash", TransformationCategory.ELEMENTS,
    ),
    # Scene
    "winter_scene": _entry(
        "Winter Scene", "冬日雪景",
        "Change the season to a snowy winter landscape.",
        "将季节改为白雪皑皑的冬日景色。",
        "ac_unit", TransformationCategory.SCENE,
    ),
    "cyberpunk": _entry(
        "Cyberpunk", "赛博朋克",
        "Transform the scene into a futuristic cyberpunk city.",
        "将场景变成未来感的赛博朋克城市。",
        "location_city", TransformationCategory.SCENE,
    ),
    "mars_surface": _entry(
        "Mars Surface", "火星表面",
        "Place the subject on the surface of Mars.",
        "将主体放置在火星表面。",
        "public", TransformationCategory.SCENE,
    ),
    "tokyo_night": _entry(
        "Tokyo Night", "东京之夜",
        "Turn the background into a bustling Tokyo street at night.",
        "把背景变成夜晚繁华的东京街头。",
        "nightlife", TransformationCategory.SCENE,
    ),
    "underwater": _entry(
        "Underwater", "水下世界",
        "Create an underwater version of the scene.",
        "创建这个场景的水下版本。",
        "water", TransformationCategory.SCENE,
    ),
    # Lighting
    "cinematic_light": _entry(
        "Cinematic Light", "电影光效",
        "Add a dramatic, cinematic lighting effect.",
        "添加戏剧性的电影级光效。",
        "movie_filter", TransformationCategory.LIGHTING,
    ),
    "golden_hour": _entry(
        "Golden Hour", "黄金时刻",
        "Change the time of day to a beautiful golden hour sunset.",
        "将时间改为美丽的黄金时刻日落。",
        "wb_twilight", TransformationCategory.LIGHTING,
    ),
    "lens_flare": _entry(
        "Lens Flare", "镜头光晕",
        "Add a dramatic lens flare effect.",
        "添加戏剧性的镜头光晕效果。",
        "flare", TransformationCategory.LIGHTING,
    ),
    # Special
    "magical_aura": _entry(
        "Magical Aura", "魔法光环",
        "Surround the subject with a magical, glowing aura.",
        "用发光的魔法光环环绕主体。",
        "auto_awesome", TransformationCategory.SPECIAL,
    ),
    "double_exposure": _entry(
        "Double Exposure", "双重曝光",
        "Create a double exposure effect with a forest silhouette.",
        "用森林剪影创建双重曝光效果。",
        "layers", TransformationCategory.SPECIAL,
    ),
    "snow_globe": _entry(
        "Snow Globe", "水晶球",
        "Place the scene inside a crystal snow globe.",
        "将场景放入水晶雪球中。",
        "language", TransformationCategory.SPECIAL,
    ),
    "marble_statue": _entry(
        "Marble Statue", "大理石雕像",
        "Make the main subject appear as a marble statue.",
        "让主体看起来像一座大理石雕像。",
        "account_balance", TransformationCategory.SPECIAL,
    ),
}


def build_seed_document(
    existing: dict[str, dict],
    force: bool = False,
) -> tuple[dict[str, dict], list[str]]:
    """
    Default catalog document to write, plus the keys it adds.

    Incremental by default: entries already in the catalog are kept as
    they are and only missing built-ins are added. force=True replaces
    the whole document with the shipped built-ins.
    """
    if force:
        return {key: dict(fields) for key, fields in DEFAULT_CATALOG.items()}, list(DEFAULT_CATALOG)

    document = {key: dict(fields) for key, fields in existing.items()}
    added = []
    for key, fields in DEFAULT_CATALOG.items():
        if key not in document:
            document[key] = dict(fields)
            added.append(key)
    return document, added
