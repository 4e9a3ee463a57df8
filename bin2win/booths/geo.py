"""Great-circle distance and bounding boxes for nearby-booth search"""
import math

EARTH_RADIUS_KM = 6371
KM_PER_DEGREE = 111.32


def haversine_km(lat1, lng1, lat2, lng2):
    """Distance between two points in km, rounded to 2 decimals"""
    lat1, lng1, lat2, lng2 = (float(value) for value in (lat1, lng1, lat2, lng2))
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_KM * c, 2)


def longitude_ranges(min_lng, max_lng):
    """Split a longitude span that crosses the antimeridian into ranges inside [-180, 180]"""
    if max_lng - min_lng >= 360:
        return [(-180.0, 180.0)]
    if min_lng < -180:
        return [(min_lng + 360, 180.0), (-180.0, max_lng)]
    if max_lng > 180:
        return [(min_lng, 180.0), (-180.0, max_lng - 360)]
    return [(min_lng, max_lng)]


def bounding_box(lat, lng, radius_km):
    """
    (min_lat, max_lat, [(min_lng, max_lng), ...]) loosely enclosing a circle,
    used as a DB prefilter. There are two longitude ranges when the circle
    crosses 180 degrees.
    """
    lat, lng, radius_km = float(lat), float(lng), float(radius_km)
    lat_delta = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    # Near the poles a longitude degree shrinks to nothing; don't filter on it there
    lng_delta = 180.0 if abs(cos_lat) < 1e-6 else radius_km / (KM_PER_DEGREE * abs(cos_lat))
    return (max(-90.0, lat - lat_delta), min(90.0, lat + lat_delta),
            longitude_ranges(lng - lng_delta, lng + lng_delta))
