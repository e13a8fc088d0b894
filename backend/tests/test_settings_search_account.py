def test_settings_created_with_defaults(client, headers):
    r = client.get('/api/settings', headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body['focus_duration'] == 25
    assert body['break_duration'] == 5
    assert body['email_notifications'] is False
    assert body['has_resend_api_key'] is False
    assert 'resend_api_key' not in body


def test_settings_update_hides_api_key(client, headers):
    r = client.put('/api/settings', json={'display_name': 'Ada', 'focus_duration': 50, 'resend_api_key': 're_secret'}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body['display_name'] == 'Ada'
    assert body['focus_duration'] == 50
    assert body['has_resend_api_key'] is True
    assert 're_secret' not in r.text

    again = client.get('/api/settings', headers=headers).json()
    assert again['display_name'] == 'Ada'
    assert again['break_duration'] == 5


def test_settings_reject_non_positive_durations(client, headers):
    r = client.put('/api/settings', json={'focus_duration': 0}, headers=headers)
    assert r.status_code == 400
    assert 'focus_duration' in r.json()['error']


def test_search_needs_two_characters(client, headers):
    assert client.get('/api/search', params={'q': 'a'}, headers=headers).status_code == 400
    assert client.get('/api/search', headers=headers).status_code == 400


def test_search_matches_across_types_and_owners(client, make_user):
    me, other = make_user(), make_user()
    client.post('/api/todos', json={'text': 'Finish Graph homework'}, headers=me)
    client.post('/api/ideas', json={'content': 'graph colouring visualiser'}, headers=me)
    client.post('/api/tags', json={'name': 'graphs'}, headers=me)
    client.post('/api/snippets', json={'title': 'BFS', 'content': 'graph traversal'}, headers=other)

    r = client.get('/api/search', params={'q': 'GRAPH'}, headers=me)
    assert r.status_code == 200
    body = r.json()
    assert len(body['todos']) == 1 and body['todos'][0]['_type'] == 'todo'
    assert len(body['ideas']) == 1
    assert body['snippets'] == []
    assert [t['name'] for t in body['tags']] == ['graphs']
    assert body['total_count'] == 3

    only_ideas = client.get('/api/search', params={'q': 'graph', 'type': 'ideas'}, headers=me).json()
    assert list(only_ideas) == ['ideas']


def test_search_results_are_capped(client, headers):
    for n in range(12):
        client.post('/api/ideas', json={'content': f'lecture idea {n}'}, headers=headers)
    body = client.get('/api/search', params={'q': 'lecture'}, headers=headers).json()
    assert len(body['ideas']) == 10


def test_delete_account_removes_everything(client, make_user):
    doomed, survivor = make_user(), make_user()
    subject = client.post('/api/academics', json={'name': 'Networks'}, headers=doomed).json()
    client.post('/api/syllabus', json={'subject_id': subject['id'], 'modules': [{'title': 'TCP'}]}, headers=doomed)
    client.post('/api/semesters', json={'name': 'Fall', 'is_current': True}, headers=doomed)
    client.get('/api/settings', headers=doomed)
    kept = client.post('/api/ideas', json={'content': 'keep me'}, headers=survivor).json()

    r = client.delete('/api/user', headers=doomed)
    assert r.status_code == 200
    assert r.json()['success'] is True

    assert client.get('/api/academics', headers=doomed).status_code == 401
    assert [i['id'] for i in client.get('/api/ideas', headers=survivor).json()] == [kept['id']]


def test_search_wildcards_match_literally(client, headers):
    client.post('/api/ideas', json={'content': 'hello'}, headers=headers)
    client.post('/api/ideas', json={'content': 'grade 100% done_today'}, headers=headers)

    underscores = client.get('/api/search', params={'q': '__', 'type': 'ideas'}, headers=headers).json()
    assert underscores['ideas'] == []

    percent = client.get('/api/search', params={'q': '0%', 'type': 'ideas'}, headers=headers).json()
    assert [i['content'] for i in percent['ideas']] == ['grade 100% done_today']

    underscore = client.get('/api/search', params={'q': 'e_t', 'type': 'ideas'}, headers=headers).json()
    assert [i['content'] for i in underscore['ideas']] == ['grade 100% done_today']
