#!/usr/bin/env python3
"""Create synthetic renders and check that perceptualdiff separates noise from real changes"""

import numpy as np
from PIL import Image, ImageDraw

from perceptualdiff import PerceptualDiff, PerceptualDiffConfig, make_diff_mask


def render_scene(offset: float = 0.0) -> Image.Image:
    """Draw a simple scene; offset shifts the shapes by a sub-pixel amount via supersampling"""
    scale = 4
    img = Image.new('RGB', (512 * scale, 512 * scale), 'white')
    draw = ImageDraw.Draw(img)

    # Blue gradient background
    for y in range(0, 512 * scale, scale):
        color_val = int(255 * (1 - y / (512 * scale)))
        draw.rectangle([(0, y), (512 * scale, y + scale)], fill=(0, 0, color_val))

    dx = int(round(offset * scale))
    draw.ellipse([150 * scale + dx, 150 * scale, 350 * scale + dx, 350 * scale], fill='red')
    draw.rectangle([60 * scale + dx, 400 * scale, 200 * scale + dx, 460 * scale], fill='yellow')
    return img.resize((512, 512), Image.Resampling.LANCZOS)


def validate_system():
    print("=" * 70)
    print("SYSTEM VALIDATION: perceptualdiff with synthetic renders")
    print("=" * 70)

    reference = np.asarray(render_scene())
    jittered = np.asarray(render_scene(offset=0.25))

    recolored_img = render_scene()
    ImageDraw.Draw(recolored_img).rectangle([300, 60, 400, 120], fill=(0, 200, 0))
    recolored = np.asarray(recolored_img)

    engine = PerceptualDiff(PerceptualDiffConfig())
    checks = [
        ("identical", reference, reference.copy(), True),
        ("sub-pixel jitter", reference, jittered, True),
        ("recolored region", reference, recolored, False),
    ]

    all_ok = True
    for name, img_a, img_b, expected in checks:
        mask = make_diff_mask(img_a.shape[1], img_a.shape[0])
        verdict = engine.compare(img_a, img_b, mask)
        ok = verdict.passed == expected
        all_ok = all_ok and ok
        print(f"  {'✓' if ok else '✗'} {name}: {'PASS' if verdict else 'FAIL'} - {verdict.report()}")
        Image.fromarray(mask).save(f"diff_{name.replace(' ', '_')}.png")

    print("\nAll checks behaved as expected" if all_ok else "\nUnexpected verdicts, see above")
    return all_ok


if __name__ == '__main__':
    validate_system()
