from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from yearline import db
from yearline.models import Playlist, Track
from yearline.services.games.errors import NotFound, ResourceError

playlists = Blueprint('playlists', __name__)

TRACK_STATUSES = ('pending', 'ready', 'unmatched')


@playlists.route('', methods=['POST'])
@login_required
def register_playlist():
    """
    Registers a playlist whose tracks have already been matched by the import
    pipeline. Tracks without a release year never reach a deck.
    """
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    tracks = data.get('tracks')
    if not name or not isinstance(tracks, list):
        raise ResourceError('Playlist name and tracks are required')

    playlist = Playlist(owner_id=current_user.id, name=name)
    for position, raw in enumerate(tracks):
        if not isinstance(raw, dict) or not raw.get('title'):
            raise ResourceError(f'Track {position} needs a title')
        status = raw.get('status') or ('ready' if raw.get('release_year') is not None else 'unmatched')
        if status not in TRACK_STATUSES:
            raise ResourceError(f'Track {position} has unknown status {status}')
        year = raw.get('release_year')
        if year is not None and (isinstance(year, bool) or not isinstance(year, int)):
            raise ResourceError(f'Track {position} has an invalid release year')
        playlist.tracks.append(Track(
            position=position,
            title=raw['title'],
            artist_names=raw.get('artist_names') or [],
            release_year=year,
            image_url=raw.get('image_url'),
            status=status,
        ))
    # Processing is finished once no track is waiting on a match
    playlist.status = 'processing' if any(t.status == 'pending' for t in playlist.tracks) else 'ready'
    db.session.add(playlist)
    db.session.commit()
    current_app.logger.info(f"[playlist] id={playlist.id} tracks={len(playlist.tracks)} ready={len(playlist.ready_tracks)}")
    return jsonify(playlist.to_dict()), 201


@playlists.route('', methods=['GET'])
@login_required
def list_playlists():
    owned = Playlist.query.filter_by(owner_id=current_user.id).order_by(Playlist.imported_at.desc()).all()
    return jsonify([p.to_dict() for p in owned])


@playlists.route('/<int:playlist_id>', methods=['GET'])
@login_required
def get_playlist(playlist_id):
    playlist = db.session.get(Playlist, playlist_id)
    if not playlist or playlist.owner_id != current_user.id:
        raise NotFound('Playlist not found')
    payload = playlist.to_dict()
    payload['tracks'] = [
        {
            'id': t.id,
            'position': t.position,
            'title': t.title,
            'artist_names': t.artist_names,
            'release_year': t.release_year,
            'status': t.status,
        }
        for t in playlist.tracks
    ]
    return jsonify(payload)
