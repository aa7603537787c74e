"""Canned payloads and pages shared by the extraction tests."""

import json


def dense_entry(name, phone="", address="", category="", website="", description="", url="",
                rating=None, count=None):
    """A business entry in the dense positional-array shape."""
    entry = [None] * 179
    entry[14] = name
    entry[39] = address or None
    entry[13] = [category] if category else None
    entry[4] = [None] * 7 + [rating, count]
    entry[178] = [[phone]] if phone else None
    entry[7] = [website] if website else None
    entry[3] = [None, description] if description else None
    entry[5] = [url] if url else None
    return entry


def dense_payload(*entries, prefix=True):
    body = json.dumps([None, None, None, None, None, None, [list(entries)]])
    return (")]}'\n" + body) if prefix else body


MAPS_LISTINGS_HTML = """
<html><body><div role="feed">
  <div class="Nv2PK">
    <a class="hfpxzc" href="https://www.google.com/maps/place/Joes+Cafe" aria-label="Joe's Cafe"></a>
    <div class="qBF1Pd fontHeadlineSmall">Joe's Cafe</div>
    <span class="MW4etd">4.6</span><span class="UY7F9">(1,234)</span>
    <div class="info">
      <div class="W4Efsd"><span>Coffee shop · $$</span></div>
      <div class="W4Efsd"><span>12 Main St</span></div>
    </div>
    <a href="tel:+1 512-555-0100">Call</a>
    <a data-item-id="authority" href="https://joescafe.com">Website</a>
  </div>
  <div class="Nv2PK">
    <a class="hfpxzc" href="https://www.google.com/maps/place/Joes+Cafe+2"></a>
    <div class="qBF1Pd fontHeadlineSmall">Joe's Cafe</div>
  </div>
  <div class="Nv2PK">
    <div class="qBF1Pd fontHeadlineSmall">A</div>
  </div>
  <div class="Nv2PK">
    <a class="hfpxzc" href="/maps/place/Bean+There"></a>
    <div class="qBF1Pd fontHeadlineSmall">Bean There</div>
    <span class="MW4etd">4.1</span>
  </div>
</div></body></html>
"""

MAPS_DETAIL_HTML = """
<html><head>
  <meta property="og:description" content="Cozy neighborhood cafe serving espresso and pastries.">
</head><body>
  <button data-item-id="phone:tel:+15125550100" aria-label="Phone: +1 512-555-0100">
    <div class="Io6YTe">+1 512-555-0100</div>
  </button>
  <a data-item-id="authority" href="https://joescafe.com">joescafe.com</a>
  <button data-item-id="address"><div class="Io6YTe">12 Main St, Austin, TX</div></button>
</body></html>
"""

YP_LISTINGS_HTML = """
<html><body>
  <div class="result">
    <a class="business-name" href="/austin-tx/mip/bobs-plumbing-123"><span>Bob's Plumbing</span></a>
    <div class="phones phone primary">(512) 555-0100</div>
    <div class="adr"><div class="street-address">1 Elm St</div></div>
    <div class="categories"><a>Plumbers</a></div>
    <a class="track-visit-website" href="https://bobsplumbing.com/?utm=yp">Website</a>
    <p class="snippet">Family owned plumbing since 1982.</p>
  </div>
  <div class="v-card">
    <a class="business-name" href="/austin-tx/mip/other-1">Other Plumbing</a>
  </div>
  <div class="v-card">
    <a class="business-name" href="/austin-tx/mip/other-2">Third Plumbing</a>
  </div>
</body></html>
"""

YP_DETAIL_HTML = """
<html><body>
  <div class="business-description">Licensed plumbers serving central Texas for forty years.</div>
  <a href="mailto:office@bobsplumbing.com?subject=Quote">Email us</a>
  <p>Or write to info@bobsplumbing.com.</p>
</body></html>
"""

WEBSITE_HTML = """
<html><body>
  <p>Questions? Write to hello@joescafe.com or HELLO@joescafe.com.</p>
  <p>Template left over: name@example.com</p>
  <img src="logo@2x.png">
</body></html>
"""
